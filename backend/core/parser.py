# backend/core/parser.py
from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple

from core.nutrients import Nutrients

# =========================
# --------- Regex ---------
# =========================

# Apostrophe read in place of the decimal point: 12'5 -> 12.5
APOSTROPHE_DECIMAL_RE = re.compile(r"(?<=\d)['’`](?=\d)")

SERVING_RE = re.compile(
    r"(?:serving size|takaran saji).*?(\d+(?:[.,]\d+)?\s*(?:kg|ml|g))"
)

NUMBER = r"(\d+(?:[.,]\d+)?)"

# Between a keyword and its value only the rest of the keyword's word
# ("sugar" -> "sugars"), separators and a bracketed unit may appear. Any other
# word means the number belongs to the next row of the label.
MAX_VALUE_GAP = 15
SEPARATORS = r"[^\da-z]{0,%d}?" % MAX_VALUE_GAP
VALUE_GAP = r"[a-z]*" + SEPARATORS + r"(?:\((?:kcal|kkal|kj|mg|g)\)" + SEPARATORS + r")?"

# =========================
# ----- Static Data -------
# =========================

# Known tesseract misreadings of label keywords (English + Indonesian).
# Replacements must not contain their own keys, so normalizing is idempotent.
OCR_FIXES: Dict[str, str] = {
    "1emak": "lemak",
    "iemak": "lemak",
    "lernak": "lemak",
    "gararn": "garam",
    "garan ": "garam ",
    "karbohidrai": "karbohidrat",
    "karbohldrat": "karbohidrat",
    "protien": "protein",
    "prote1n": "protein",
    "sugar5": "sugars",
    "natriurn": "natrium",
    "sodiurn": "sodium",
    "energl": "energi",
}

# Ordered synonyms: specific phrases before generic ones.
NUTRIENT_KEYWORDS: List[Tuple[str, List[str]]] = [
    ("energy_kcal", ["energi total", "energy", "kalori", "calories", "kcal"]),
    ("protein_g", ["protein", "proteine"]),
    ("fat_g", ["lemak total", "total fat", "lemak", "fat", "lipides"]),
    ("saturated_fat_g", ["lemak jenuh", "saturated fat", "sat fat"]),
    ("carbohydrate_g", ["karbohidrat", "total carb", "carbohydrate", "carb", "glucides"]),
    ("sugar_g", ["gula", "total sugar", "sugars", "sugar"]),
    ("fiber_g", ["serat pangan", "dietary fiber", "serat", "fiber", "fibre"]),
    ("sodium_mg", ["natrium", "sodium"]),
    ("salt_g", ["garam", "salt"]),
    ("cholesterol_mg", ["kolesterol", "cholesterol"]),
]

# Sub-types of fat that would otherwise satisfy the generic "fat"/"lemak".
FAT_SUBTYPES = ["lemak jenuh", "lemak trans", "saturated fat", "sat fat", "trans fat"]

# =========================
# ---- Text Utilities -----
# =========================

def normalize_text(text: str) -> str:
    if not text:
        return ""
    t = text.lower()
    t = t.replace("|", " ").replace("\r", " ").replace("\n", " ")
    for wrong, right in OCR_FIXES.items():
        t = t.replace(wrong, right)
    return APOSTROPHE_DECIMAL_RE.sub(".", t)


def _to_float(raw: str) -> Optional[float]:
    try:
        return float(raw.replace(",", ".", 1))
    except (TypeError, ValueError):
        return None


def _mask(text: str, phrases: List[str]) -> str:
    for p in phrases:
        text = text.replace(p, " " * len(p))
    return text


def find_value(text: str, keywords: List[str]) -> Optional[float]:
    """Value after the first keyword (in list order) that yields a number."""
    for key in keywords:
        pattern = re.escape(key) + VALUE_GAP + NUMBER
        m = re.search(pattern, text)
        if not m:
            continue
        val = _to_float(m.group(1))
        if val is not None:
            return val
    return None


def find_serving_size(text: str) -> Optional[str]:
    m = SERVING_RE.search(text)
    if not m:
        return None
    return re.sub(r"\s+", "", m.group(1))

# =========================
# ------ Extraction -------
# =========================

def extract(raw_text: str) -> Tuple[Nutrients, Optional[str]]:
    """
    Pull a sparse Nutrients set and the serving size out of recognized label
    text. Never raises; anything not found stays None.
    """
    text = normalize_text(raw_text or "")
    nutrients = Nutrients()

    for field_name, keywords in NUTRIENT_KEYWORDS:
        haystack = _mask(text, FAT_SUBTYPES) if field_name == "fat_g" else text
        val = find_value(haystack, keywords)
        if val is not None:
            setattr(nutrients, field_name, val)

    return nutrients, find_serving_size(text)
