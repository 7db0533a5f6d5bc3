# backend/core/scoring.py
from __future__ import annotations

from bisect import bisect_left
from typing import Optional, Sequence, Tuple

from core.nutrients import Nutrients

# =========================
# ---- Point tables -------
# =========================
# Nutri-Score solid foods tables. A value scores the index of the first
# threshold it does not exceed; anything above the last one scores len(table).

KCAL_TO_KJ = 4.184

ENERGY_KJ = (335, 670, 1005, 1340, 1675, 2010, 2345, 2680, 3015, 3350)
SUGAR_G = (4.5, 9, 13.5, 18, 22.5, 27, 31, 36, 40, 45)
SAT_FAT_G = (1, 2, 3, 4, 5, 6, 7, 8, 9, 10)
SODIUM_MG = (90, 180, 270, 360, 450, 540, 630, 720, 810, 900)

FIBER_G = (0.9, 1.9, 2.8, 3.7, 4.7)
PROTEIN_G = (1.6, 3.2, 4.8, 6.4, 8.0)

# Upper bound (inclusive) of each grade, best first.
GRADE_LADDER = ((-1, "A"), (2, "B"), (10, "C"), (18, "D"))
WORST_GRADE = "E"

# The reference algorithm drops protein points when N >= 11 and fruit points
# are < 5. We always count protein; OCR cannot see fruit content anyway.
PROTEIN_CAP_APPLIED = False


def step_points(value: Optional[float], thresholds: Sequence[float]) -> int:
    if value is None:
        return 0
    return bisect_left(thresholds, value)


def energy_points(kcal: Optional[float]) -> int:
    if kcal is None:
        return 0
    return step_points(kcal * KCAL_TO_KJ, ENERGY_KJ)


def negative_points(n: Nutrients) -> int:
    return (
        energy_points(n.energy_kcal)
        + step_points(n.sugar_g, SUGAR_G)
        + step_points(n.saturated_fat_g, SAT_FAT_G)
        + step_points(n.sodium_mg, SODIUM_MG)
    )


def positive_points(n: Nutrients) -> int:
    # fruit/vegetable/nut points would go here; always 0 for label scans
    return step_points(n.fiber_g, FIBER_G) + step_points(n.protein_g, PROTEIN_G)


def grade_from_score(score: int) -> str:
    for upper, grade in GRADE_LADDER:
        if score <= upper:
            return grade
    return WORST_GRADE


def score(n: Optional[Nutrients]) -> Tuple[str, int]:
    """
    Nutri-Score of a (possibly sparse) nutrient set: (grade A..E, N - P).
    Missing nutrients contribute nothing.
    """
    n = n or Nutrients()
    value = negative_points(n) - positive_points(n)
    return grade_from_score(value), value
