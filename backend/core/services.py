# backend/core/services.py
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from django.db import IntegrityError

from core import analysis, scoring
from core.exceptions import InvalidInput, NotFound, ProductNotFound
from core.models import Product
from core.nutrients import Nutrients

logger = logging.getLogger(__name__)


def annotate_product(product: Product) -> Product:
    """Fill score, grade, highlights and insights from the product's nutrients."""
    nutrients = product.get_nutrients()
    if nutrients.is_empty():
        return product
    grade, value = scoring.score(nutrients)
    highlights, insights = analysis.analyze(nutrients)
    product.nutri_score = grade
    product.nutri_score_value = value
    product.highlights = [h.to_dict() for h in highlights]
    product.insights = [i.to_dict() for i in insights]
    return product


class ProductService:
    """Barcode lookup: local product table first, OpenFoodFacts second."""

    def __init__(self, product_repo, off_client):
        self.product_repo = product_repo
        self.off_client = off_client

    def get_by_barcode(self, barcode: str) -> Product:
        try:
            return self.product_repo.find_by_barcode(barcode)
        except ProductNotFound:
            pass

        product = self.off_client.get_product(barcode)
        if product is None:
            raise ProductNotFound(barcode)

        annotate_product(product)
        try:
            return self.product_repo.create(product)
        except IntegrityError:
            # someone cached the same barcode in the meantime
            logger.info("Product %s cached concurrently, reloading", barcode)
            return self.product_repo.find_by_barcode(barcode)


# ---- product comparison ----

# (label, unit, Nutrients field, lower is better)
COMPARED_NUTRIENTS = (
    ("Calories", "kcal", "energy_kcal", True),
    ("Protein", "g", "protein_g", False),
    ("Fat", "g", "fat_g", True),
    ("Saturated Fat", "g", "saturated_fat_g", True),
    ("Carbohydrate", "g", "carbohydrate_g", True),
    ("Sugar", "g", "sugar_g", True),
    ("Fiber", "g", "fiber_g", False),
    ("Sodium", "mg", "sodium_mg", True),
)


@dataclass
class NutrientComparison:
    name: str
    unit: str
    value_a: Optional[float] = None
    value_b: Optional[float] = None
    difference: Optional[float] = None
    winner: str = "unknown"  # a | b | tie | unknown
    note: str = ""


@dataclass
class ProductComparison:
    product_a: Product
    product_b: Product
    comparisons: List[NutrientComparison] = field(default_factory=list)
    winner: str = "tie"
    verdict: str = ""


def compare_nutrient(name: str, unit: str, a: Optional[float], b: Optional[float],
                     lower_better: bool) -> NutrientComparison:
    comp = NutrientComparison(name=name, unit=unit, value_a=a, value_b=b)
    if a is None or b is None:
        return comp

    comp.difference = a - b
    if a == b:
        comp.winner = "tie"
        return comp

    a_wins = a < b if lower_better else a > b
    comp.winner = "a" if a_wins else "b"
    # relative to the larger of the two values
    pct = abs(a - b) / max(a, b) * 100
    comp.note = f"{pct:.0f}% {'less' if lower_better else 'more'} {name}"
    return comp


def compare_nutrients(a: Nutrients, b: Nutrients) -> List[NutrientComparison]:
    return [
        compare_nutrient(label, unit, getattr(a, attr), getattr(b, attr), lower_better)
        for label, unit, attr, lower_better in COMPARED_NUTRIENTS
    ]


def verdict_for(a: Product, b: Product, comparisons: List[NutrientComparison]) -> Tuple[str, str]:
    """Nutri-Score decides first; otherwise the product winning more nutrients."""
    if a.nutri_score and b.nutri_score and a.nutri_score != b.nutri_score:
        if a.nutri_score < b.nutri_score:
            return "a", f"{a.name} is healthier with Nutri-Score {a.nutri_score} vs {b.nutri_score}"
        return "b", f"{b.name} is healthier with Nutri-Score {b.nutri_score} vs {a.nutri_score}"

    wins_a = sum(1 for c in comparisons if c.winner == "a")
    wins_b = sum(1 for c in comparisons if c.winner == "b")
    total = len(comparisons)
    if wins_a > wins_b:
        return "a", f"{a.name} wins {wins_a} of {total} nutrient categories"
    if wins_b > wins_a:
        return "b", f"{b.name} wins {wins_b} of {total} nutrient categories"
    return "tie", "Both products have a similar nutrition profile"


def compare_products(a: Product, b: Product) -> ProductComparison:
    comparisons = compare_nutrients(a.get_nutrients(), b.get_nutrients())
    winner, verdict = verdict_for(a, b, comparisons)
    return ProductComparison(product_a=a, product_b=b, comparisons=comparisons,
                             winner=winner, verdict=verdict)


class ProductComparer:
    """Resolves both sides by barcode, then by scan id, and compares them."""

    def __init__(self, product_repo, scan_repo):
        self.product_repo = product_repo
        self.scan_repo = scan_repo

    def find_product(self, identifier: str) -> Product:
        try:
            return self.product_repo.find_by_barcode(identifier)
        except NotFound:
            pass
        try:
            scan = self.scan_repo.find_by_id(identifier)
        except NotFound:
            scan = None
        if scan is None or scan.product is None:
            raise ProductNotFound(identifier)
        return scan.product

    def compare(self, product_a: str, product_b: str) -> ProductComparison:
        if not product_a or not product_b:
            raise InvalidInput("both product_a and product_b are required")
        if product_a == product_b:
            raise InvalidInput("cannot compare a product with itself")
        return compare_products(self.find_product(product_a), self.find_product(product_b))
