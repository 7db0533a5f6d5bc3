# backend/core/nutrients.py
from __future__ import annotations

from dataclasses import dataclass, asdict, fields
from typing import Any, Dict, Optional

# Units are fixed per field (kcal, g, mg, IU). None always means "not on the
# label", never zero.


@dataclass
class Nutrients:
    energy_kcal: Optional[float] = None
    protein_g: Optional[float] = None
    carbohydrate_g: Optional[float] = None
    sugar_g: Optional[float] = None
    fat_g: Optional[float] = None
    saturated_fat_g: Optional[float] = None
    fiber_g: Optional[float] = None
    sodium_mg: Optional[float] = None
    salt_g: Optional[float] = None
    cholesterol_mg: Optional[float] = None
    trans_fat_g: Optional[float] = None
    vitamin_a_iu: Optional[float] = None
    vitamin_c_mg: Optional[float] = None
    calcium_mg: Optional[float] = None
    iron_mg: Optional[float] = None
    potassium_mg: Optional[float] = None

    def to_dict(self) -> Dict[str, float]:
        """Sparse dict: unknown fields are left out."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Nutrients":
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            if key not in known or value is None:
                continue
            try:
                kwargs[key] = float(value)
            except (TypeError, ValueError):
                continue
        return cls(**kwargs)

    def is_empty(self) -> bool:
        return not self.to_dict()


@dataclass(frozen=True)
class NutrientHighlight:
    nutrient: str
    level: str  # low | medium | high
    value: float
    unit: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Insight:
    type: str
    title: str
    message: str
    severity: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
