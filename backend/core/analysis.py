# backend/core/analysis.py
from __future__ import annotations

from typing import List, NamedTuple, Optional, Tuple

from core.nutrients import Insight, NutrientHighlight, Nutrients


class Rule(NamedTuple):
    field: str
    label: str
    unit: str
    high_above: float
    low_below: Optional[float] = None
    # only sugar reports the band between its two thresholds
    medium: bool = False
    warning: Optional[Insight] = None


HIGH_SUGAR = Insight(
    type="health",
    title="Limit Intake",
    message="Content contains high level of sugar.",
    severity="warning",
)

HIGH_SAT_FAT = Insight(
    type="health",
    title="Warning",
    message="High in saturated fats/trans fats.",
    severity="warning",
)

# Order here is the order highlights are emitted in. Values per 100 g.
# Nutrients without a low threshold are only ever flagged as high.
RULES: Tuple[Rule, ...] = (
    Rule("sugar_g", "Sugar", "g", high_above=22.5, low_below=5, medium=True, warning=HIGH_SUGAR),
    Rule("fat_g", "Fat", "g", high_above=17.5, low_below=3),
    Rule("saturated_fat_g", "Saturated Fat", "g", high_above=5, warning=HIGH_SAT_FAT),
    Rule("protein_g", "Protein", "g", high_above=10),
    Rule("sodium_mg", "Sodium", "mg", high_above=600),
)


def classify(value: float, rule: Rule) -> Optional[str]:
    """high, low, medium, or None when the value falls in an unreported band."""
    if value > rule.high_above:
        return "high"
    if rule.low_below is not None and value < rule.low_below:
        return "low"
    return "medium" if rule.medium else None


def _message(level: str, label: str) -> str:
    if level == "medium":
        return f"Moderate {label}"
    return f"{level.capitalize()} {label}"


def analyze(n: Optional[Nutrients]) -> Tuple[List[NutrientHighlight], List[Insight]]:
    """Highlights for classified nutrients, plus warnings for the bad highs."""
    highlights: List[NutrientHighlight] = []
    insights: List[Insight] = []
    if n is None:
        return highlights, insights

    for rule in RULES:
        value = getattr(n, rule.field)
        if value is None:
            continue
        level = classify(value, rule)
        if level is None:
            continue
        highlights.append(NutrientHighlight(
            nutrient=rule.label,
            level=level,
            value=value,
            unit=rule.unit,
            message=_message(level, rule.label),
        ))
        if level == "high" and rule.warning is not None:
            insights.append(rule.warning)

    return highlights, insights
