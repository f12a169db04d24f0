"""Name canonicalization shared by ingestion, alias resolution and aggregation.

Matching across the project is exact-after-normalization: two strings refer to
the same product (or ingredient) only when ``normalize_name`` maps them to the
same key.
"""
import re
import unicodedata

# Invisible and bidi control characters left behind by document extraction.
CONTROL_CHARS = (
    "\u200b\u200c\u200d\ufeff\u200e\u200f"
    "\u202a\u202b\u202c\u202d\u202e"
    "\u2066\u2067\u2068\u2069\u2060"
)
SPECIAL_SPACES = "\u00a0\u202f\u2009"

PUNCTUATION_MAP = {
    "\u2018": "'",
    "\u2019": "'",
    "\u201a": "'",
    "\u02b9": "'",
    "\u05f3": "'",
    "\u201c": '"',
    "\u201d": '"',
    "\u05f4": '"',
    "\u2013": "-",
    "\u2014": "-",
    "\u05be": "-",
}

_CONTROL_RE = re.compile(f"[{re.escape(CONTROL_CHARS)}]")
_SPECIAL_SPACE_RE = re.compile(f"[{re.escape(SPECIAL_SPACES)}]")
_NOISE_RE = re.compile(r"[()\[\]{}.,:;!?*]")
_WHITESPACE_RE = re.compile(r"\s+")
_TRANSLATION = str.maketrans(PUNCTUATION_MAP)


def clean_text(value) -> str:
    if value is None:
        return ""
    text = unicodedata.normalize("NFKC", str(value))
    text = _CONTROL_RE.sub("", text)
    text = _SPECIAL_SPACE_RE.sub(" ", text)
    text = text.translate(_TRANSLATION)
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_name(value) -> str:
    text = clean_text(value)
    text = _NOISE_RE.sub(" ", text)
    # casefold can emit sequences that are not NFKC-stable, so normalize again.
    text = unicodedata.normalize("NFKC", text.casefold())
    return _WHITESPACE_RE.sub(" ", text).strip()


UNIT_SPELLINGS = {
    "גרם": ("ג", "ג'", "גר", "גרם"),
    'ק"ג': ("קג", 'ק"ג', "ק'ג", "קילו", "קילוגרם"),
    'מ"ל': ("מל", 'מ"ל', "מיליליטר", "מיליליטרים"),
    "ליטר": ("ל", "ל'", "ליטר", "ליטרים"),
    "כפית": ("כפית", "כפיות"),
    "כף": ("כף", "כפות"),
    "כוס": ("כוס", "כוסות"),
    "יח'": ("יח", "יח'", "יחידה", "יחידות"),
    "שקית": ("שקית", "שקיות"),
    "תבנית": ("תבנית", "תבניות"),
    "קורט": ("קורט", "פינץ'"),
    "g": ("g", "gr", "gram", "grams"),
    "kg": ("kg", "kgs", "kilo", "kilos", "kilogram", "kilograms"),
    "ml": ("ml", "milliliter", "milliliters", "millilitre", "millilitres"),
    "l": ("l", "liter", "liters", "litre", "litres"),
    "tsp": ("tsp", "teaspoon", "teaspoons"),
    "tbsp": ("tbsp", "tablespoon", "tablespoons"),
    "cup": ("cup", "cups"),
    "pcs": ("pc", "pcs", "piece", "pieces"),
}

_UNIT_INDEX = {normalize_name(spelling): unit for unit, spellings in UNIT_SPELLINGS.items() for spelling in spellings}


def normalize_unit(value, aliases=None) -> str:
    """Fold spellings of one unit together. Never converts between units.

    ``aliases`` maps normalized spellings to a unit and is consulted before the
    built-in spellings, so it can also fold across languages (``cup`` to ``כוס``).
    """
    key = normalize_name(value)
    if aliases and key in aliases:
        key = normalize_name(aliases[key])
    return _UNIT_INDEX.get(key, key)
