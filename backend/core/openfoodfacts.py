# backend/core/openfoodfacts.py
from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import requests
from django.conf import settings

from core.exceptions import LookupFailed
from core.models import Product, ProductSource
from core.nutrients import Nutrients

logger = logging.getLogger(__name__)

TRANSIENT_STATUSES = (429, 500, 502, 503, 504)

# OFF gives "a".."e"; keep a 1..5 rank as the numeric value
GRADE_RANK = {"a": 1, "b": 2, "c": 3, "d": 4, "e": 5}


def _to_float(x: Any) -> Optional[float]:
    if x is None or x == "":
        return None
    try:
        return float(x)
    except (TypeError, ValueError):
        return None


def _g_to_mg(x: Any) -> Optional[float]:
    # OFF reports sodium, minerals and vitamin C per 100 g in grams
    v = _to_float(x)
    return v * 1000.0 if v is not None else None


def map_nutriments(nutr: Dict[str, Any]) -> Nutrients:
    kcal = _to_float(nutr.get("energy-kcal_100g"))
    if kcal is None:
        kj = _to_float(nutr.get("energy-kj_100g") or nutr.get("energy_100g"))
        kcal = kj / 4.184 if kj is not None else None

    return Nutrients(
        energy_kcal=kcal,
        protein_g=_to_float(nutr.get("proteins_100g")),
        carbohydrate_g=_to_float(nutr.get("carbohydrates_100g")),
        sugar_g=_to_float(nutr.get("sugars_100g")),
        fat_g=_to_float(nutr.get("fat_100g")),
        saturated_fat_g=_to_float(nutr.get("saturated-fat_100g")),
        fiber_g=_to_float(nutr.get("fiber_100g")),
        sodium_mg=_g_to_mg(nutr.get("sodium_100g")),
        salt_g=_to_float(nutr.get("salt_100g")),
        cholesterol_mg=_g_to_mg(nutr.get("cholesterol_100g")),
        trans_fat_g=_to_float(nutr.get("trans-fat_100g")),
        vitamin_a_iu=_to_float(nutr.get("vitamin-a_100g")),
        vitamin_c_mg=_g_to_mg(nutr.get("vitamin-c_100g")),
        calcium_mg=_g_to_mg(nutr.get("calcium_100g")),
        iron_mg=_g_to_mg(nutr.get("iron_100g")),
        potassium_mg=_g_to_mg(nutr.get("potassium_100g")),
    )


def map_product(barcode: str, p: Dict[str, Any]) -> Product:
    """Unsaved Product built from an OFF product payload."""
    grade = (p.get("nutriscore_grade") or "").lower()
    product = Product(
        barcode=barcode,
        name=p.get("product_name") or "Unknown",
        brand=(p.get("brands") or "").split(",")[0].strip() or None,
        image_url=p.get("image_front_url") or p.get("image_url") or None,
        source=ProductSource.OPENFOODFACTS,
        serving_size=p.get("serving_size") or None,
        nutri_score=grade.upper() if grade in GRADE_RANK else None,
        nutri_score_value=GRADE_RANK.get(grade),
    )
    product.set_nutrients(map_nutriments(p.get("nutriments") or {}))
    return product


class OpenFoodFactsClient:
    def __init__(self, base_url=None, timeout=None, retries=1, session=None, user_agent=None):
        self.base_url = (base_url or settings.OFF_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.OFF_TIMEOUT
        self.retries = retries
        self.session = session or requests.Session()
        self.headers = {"User-Agent": user_agent or settings.OFF_USER_AGENT}

    def _get(self, url: str) -> Optional[requests.Response]:
        for attempt in range(self.retries + 1):
            try:
                r = self.session.get(url, timeout=self.timeout, headers=self.headers)
            except requests.RequestException as e:
                if attempt < self.retries:
                    time.sleep(0.2 * (attempt + 1))
                    continue
                raise LookupFailed(f"failed to fetch product from OFF: {e}") from e
            if r.status_code == 404:
                return None
            # Backoff on transient errors
            if r.status_code in TRANSIENT_STATUSES and attempt < self.retries:
                time.sleep(0.4 * (attempt + 1))
                continue
            if r.status_code != 200:
                raise LookupFailed(f"OFF API returned status: {r.status_code}")
            return r
        return None

    def get_product(self, barcode: str) -> Optional[Product]:
        """Product for a barcode, or None when OFF does not know it."""
        url = f"{self.base_url}/{barcode}.json"
        r = self._get(url)
        if r is None:
            logger.info("OFF: product not found (404) for %s", barcode)
            return None
        try:
            data = r.json()
        except ValueError as e:
            raise LookupFailed(f"failed to decode OFF response: {e}") from e

        # status comes back as 1, "1" or 0 depending on the endpoint version
        if str(data.get("status")) != "1" or not data.get("product"):
            logger.info("OFF: product %s not found (status %r)", barcode, data.get("status"))
            return None
        return map_product(barcode, data["product"])
