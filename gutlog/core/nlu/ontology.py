"""Controlled vocabulary for gutlog message understanding.

Static keyword tables and pure lookup helpers used by the rules parser,
disambiguator and canonicalizer. Tables are built once at import time and
only ever read, so the helpers are safe to call from any thread.

Synonym matching is whole-word: "tea" matches "green tea" but not "steak".
Group tables are ordered; the first matching group wins, so specific and
multi-word groups are listed before broad ones.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any, Iterable, Mapping

# =============================================================================
# Meal windows
# =============================================================================

MEAL_TIME_SYNONYMS: dict[str, list[str]] = {
    "breakfast": ["breakfast", "brekkie", "for breakfast", "brunch"],
    "lunch": ["lunch", "for lunch", "midday", "noon meal"],
    "dinner": ["dinner", "supper", "for dinner"],
    "snack": ["snack", "snacked", "nibble", "between meals", "for snack"],
}

# Hour ranges [start, end) for inferring a meal window from the clock.
# Hours outside every window fall back to "snack".
MEAL_WINDOWS: dict[str, tuple[int, int]] = {
    "breakfast": (5, 11),
    "lunch": (11, 15),
    "snack": (15, 17),
    "dinner": (17, 22),
}

# =============================================================================
# Bowel movements
# =============================================================================

BM_KEYWORDS: list[str] = [
    "bowel movement",
    "went to the bathroom",
    "number two",
    "bm",
    "bowel",
    "bowels",
    "poop",
    "poops",
    "pooped",
    "pooping",
    "poo",
    "stool",
    "stools",
    "toilet",
    "bathroom",
    "restroom",
    "diarrhea",
    "constipated",
    "constipation",
]

BM_DESCRIPTORS: dict[str, list[str]] = {
    "loose": ["diarrhea", "loose", "watery", "runny", "liquid", "urgent", "explosive"],
    "hard": ["hard", "constipated", "constipation", "pellets", "pebbles", "rocky", "dry", "difficult"],
    "normal": ["normal", "good", "healthy", "regular", "fine", "solid", "formed"],
}

# Bristol estimate for each descriptor group
BRISTOL_BY_DESCRIPTOR: dict[str, int] = {
    "loose": 6,
    "hard": 2,
    "normal": 4,
}

# =============================================================================
# Symptoms
# =============================================================================

REFLUX_KEYWORDS: list[str] = [
    "acid reflux",
    "burning chest",
    "reflux",
    "heartburn",
    "acid",
    "gerd",
    "indigestion",
]

# Specific groups first; "general" is checked separately as a weaker tier
SYMPTOM_GROUPS: dict[str, list[str]] = {
    "stomach pain": [
        "stomach pain",
        "stomach ache",
        "stomachache",
        "tummy ache",
        "belly ache",
        "bellyache",
        "abdominal pain",
        "gut pain",
    ],
    "cramps": ["cramps", "cramp", "cramping"],
    "bloat": [
        "bloat", "bloated", "bloating", "gassy", "distended",
        "had gas", "have gas", "gas pain", "gas pains", "passing gas",
    ],
    "nausea": ["nausea", "nauseous", "nauseated", "queasy", "vomit", "vomiting", "threw up"],
    "headache": ["headache", "migraine"],
    "fatigue": ["fatigue", "fatigued", "exhausted", "tired"],
    "pain": ["pain", "ache", "aching", "hurt", "hurts", "sore"],
}

GENERAL_FEELING_KEYWORDS: list[str] = [
    "not feeling well",
    "not feeling great",
    "feel sick",
    "feeling sick",
    "feel off",
    "feeling off",
    "bad day",
    "unsettled",
    "uncomfortable",
    "rough",
    "ugh",
    "meh",
]

# Severity words → 1-10
ADJECTIVE_SEVERITY: dict[str, int] = {
    "very mild": 2,
    "very severe": 9,
    "tiny": 1,
    "minimal": 1,
    "slight": 3,
    "minor": 2,
    "little": 2,
    "mild": 3,
    "low": 3,
    "light": 3,
    "moderate": 5,
    "medium": 5,
    "noticeable": 5,
    "bad": 7,
    "strong": 7,
    "high": 8,
    "severe": 8,
    "terrible": 8,
    "intense": 9,
    "awful": 9,
    "horrible": 9,
    "extreme": 10,
    "worst": 10,
    "unbearable": 10,
}

# =============================================================================
# Food & drink
# =============================================================================

DRINK_SYNONYMS: dict[str, list[str]] = {
    "coffee": [
        "coffee",
        "iced coffee",
        "cold brew",
        "espresso",
        "latte",
        "cappuccino",
        "americano",
        "macchiato",
        "mocha",
        "flat white",
        "cortado",
        "frappuccino",
    ],
    "tea": [
        "tea",
        "green tea",
        "black tea",
        "herbal tea",
        "jasmine tea",
        "ginger tea",
        "peppermint tea",
        "chamomile",
        "chai",
        "matcha",
        "oolong",
        "rooibos",
    ],
    "water": ["water", "sparkling water", "seltzer", "club soda", "h2o"],
    "soda": ["soda", "coke", "pepsi", "sprite", "ginger ale", "soft drink", "cola"],
    "juice": ["juice", "orange juice", "apple juice", "oj", "lemonade"],
    "milk": ["milk", "oat milk", "almond milk", "soy milk", "hot chocolate", "cocoa"],
    "alcohol": ["beer", "wine", "red wine", "white wine", "cocktail", "whiskey", "vodka", "margarita"],
    "other": ["smoothie", "protein shake", "shake", "kombucha", "energy drink", "sports drink"],
}

# Nouns that anchor a food/drink item phrase
FOOD_HEAD_NOUNS: list[str] = [
    # Breakfast & grains
    "cereal", "oatmeal", "oats", "granola", "porridge", "toast", "bagel", "muffin",
    "pancake", "pancakes", "waffle", "waffles", "croissant", "bread", "rice", "quinoa",
    "pasta", "noodles", "ramen",
    # Eggs & proteins
    "egg", "eggs", "omelet", "omelette", "chicken", "beef", "pork", "steak", "fish",
    "salmon", "tuna", "shrimp", "turkey", "tofu", "bacon", "sausage", "ham",
    # Meals
    "salad", "sandwich", "wrap", "burger", "pizza", "soup", "stew", "chili", "curry",
    "stir fry", "bowl", "taco", "tacos", "burrito", "quesadilla", "sushi", "fries",
    # Snacks, dairy & produce
    "yogurt", "cheese", "crackers", "chips", "pretzels", "nuts", "bar", "cookie",
    "cookies", "cake", "chocolate", "ice cream", "popcorn", "apple", "banana",
    "berries", "orange", "fruit", "vegetables", "veggies", "avocado", "hummus",
]

FOOD_ACTION_VERBS: list[str] = [
    "ate",
    "eaten",
    "eat",
    "eating",
    "had",
    "having",
    "consumed",
    "cooked",
    "made",
    "munched",
    "snacked",
]

DRINK_ACTION_VERBS: list[str] = ["drank", "drink", "drinking", "sipped", "sipping", "chugged"]

# Words that never start or end an extracted item
ITEM_BLACKLIST: set[str] = {
    "breakfast", "lunch", "dinner", "snack", "brunch", "morning", "evening", "noon",
    "afternoon", "today", "yesterday", "tonight", "night", "time", "feeling", "feel",
    "had", "have", "having", "ate", "eat", "eating", "eaten", "drank", "drink",
    "drinking", "sipped", "got", "grabbed", "made", "cooked", "some", "the", "a",
    "an", "my", "for", "at", "this", "that", "i", "me", "we", "was", "were", "am",
    "is", "are", "just", "of", "with", "and", "or", "to", "on", "in", "it",
    "then", "also", "around", "about", "pm", "oz", "ml", "cup", "cups", "glass",
    "mug", "plate", "serving", "servings", "small", "medium", "large",
    "grande", "venti", "tall", "really", "very", "so", "too", "again",
}

KNOWN_BRANDS: list[str] = [
    "Honey Nut Cheerios",
    "Cheerios",
    "Raisin Bran",
    "Frosted Flakes",
    "Special K",
    "Grape-Nuts",
    "Kashi",
    "Chobani",
    "Fage",
    "Oatly",
    "Planet Oat",
    "Almond Breeze",
    "Silk",
    "Starbucks",
    "Dunkin",
    "Oregon Chai",
    "Tazo",
    "Clif",
    "Kind",
]

DAIRY_MARKERS: list[str] = ["milk", "cream", "cheese", "butter", "yogurt", "ice cream", "half and half"]
NON_DAIRY_MARKERS: list[str] = ["oat milk", "almond milk", "soy milk", "coconut milk", "non-dairy", "dairy-free", "vegan"]
CAFFEINE_MARKERS: list[str] = [
    "coffee", "espresso", "latte", "cappuccino", "americano", "macchiato", "mocha",
    "cold brew", "black tea", "green tea", "chai", "matcha", "energy drink", "coke", "cola",
]
DECAF_MARKERS: list[str] = ["decaf", "decaffeinated", "caffeine-free", "no caffeine"]

# =============================================================================
# Check-ins
# =============================================================================

CHECKIN_PATTERNS: list[str] = [
    r"\bcheck(?:ing)?[\s-]?in\b",
    r"\bskip(?:ped)?\s+(?:breakfast|lunch|dinner|a\s+meal|meals)\b",
    r"\b(?:didn'?t|did\s+not|haven'?t)\s+(?:eat|have)\b",
    r"\bavoid(?:ed|ing)\b",
    r"\bno\s+(?:symptoms|issues|problems)\b",
    r"\bfeeling\s+(?:good|great|fine|better)\b",
]

# =============================================================================
# Matching helpers
# =============================================================================


@lru_cache(maxsize=1024)
def _phrase_pattern(phrase: str) -> re.Pattern[str]:
    """Compile a whole-word pattern for a synonym phrase."""
    escaped = r"\s+".join(re.escape(part) for part in phrase.lower().split())
    return re.compile(rf"(?<![\w]){escaped}(?![\w])")


def normalize_text(text: str) -> str:
    """Lower-case, strip, and collapse whitespace."""
    return re.sub(r"\s+", " ", (text or "").strip().lower())


def find_synonym(text: str, synonyms: Iterable[str]) -> str | None:
    """Return the longest synonym found in text, or None."""
    lowered = normalize_text(text)
    best: str | None = None
    for synonym in synonyms:
        if _phrase_pattern(synonym).search(lowered):
            if best is None or len(synonym) > len(best):
                best = synonym
    return best


def contains_synonym(text: str, synonyms: Iterable[str]) -> bool:
    """Check if text contains any synonym as a whole word or phrase."""
    lowered = normalize_text(text)
    return any(_phrase_pattern(synonym).search(lowered) for synonym in synonyms)


def find_synonym_group(text: str, groups: Mapping[str, Iterable[str]]) -> str | None:
    """Return the first group label whose synonyms appear in text."""
    for label, synonyms in groups.items():
        if contains_synonym(text, synonyms):
            return label
    return None


# Longest phrases first so "very mild" beats "mild"
_SEVERITY_WORDS = sorted(ADJECTIVE_SEVERITY.items(), key=lambda x: len(x[0]), reverse=True)


def extract_severity_from_adjectives(text: str) -> int | None:
    """Map severity adjectives in text to a 1-10 score."""
    lowered = normalize_text(text)
    for word, severity in _SEVERITY_WORDS:
        if _phrase_pattern(word).search(lowered):
            return severity
    return None


_SEVERITY_NUMBER = re.compile(
    r"(?:\b(\d{1,3})\s*(?:/|out\s+of)\s*10\b)"
    r"|(?:\b(?:severity|level|sev)\s*(?:is\s+|of\s+|=\s*|:\s*)?(\d{1,3})\b)"
)
_BRISTOL_NUMBER = re.compile(
    r"\b(?:bristol|type|bss)\s*(?:scale\s+)?(?:#|=|:)?\s*(\d{1,2})\b"
)


def extract_numeric_severity(text: str) -> int | None:
    """Extract an explicit numeric severity ("7/10", "severity 6"), clamped."""
    match = _SEVERITY_NUMBER.search(normalize_text(text))
    if not match:
        return None
    return clamp_severity(match.group(1) or match.group(2))


def extract_numeric_bristol(text: str) -> int | None:
    """Extract an explicit Bristol type ("bristol 4", "type 5"), clamped."""
    match = _BRISTOL_NUMBER.search(normalize_text(text))
    if not match:
        return None
    return clamp_bristol(match.group(1))


def _clamp_int(value: Any, low: int, high: int) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(float(str(value).strip()))
    except (TypeError, ValueError):
        match = re.search(r"-?\d+", str(value))
        if not match:
            return None
        number = int(match.group())
    return max(low, min(high, number))


def clamp_severity(value: Any) -> int | None:
    """Coerce a severity to an int in [1, 10]; None if not numeric."""
    return _clamp_int(value, 1, 10)


def clamp_bristol(value: Any) -> int | None:
    """Coerce a Bristol type to an int in [1, 7]; None if not numeric."""
    return _clamp_int(value, 1, 7)


def infer_meal_window(hour: int) -> str:
    """Infer the meal window for an hour of day (0-23)."""
    for label, (start, end) in MEAL_WINDOWS.items():
        if start <= hour < end:
            return label
    return "snack"


def matches_checkin(text: str) -> bool:
    """Check for check-in or skipped-meal phrasing."""
    lowered = normalize_text(text)
    return any(re.search(pattern, lowered) for pattern in CHECKIN_PATTERNS)


__all__ = [
    "ADJECTIVE_SEVERITY",
    "BM_DESCRIPTORS",
    "BM_KEYWORDS",
    "BRISTOL_BY_DESCRIPTOR",
    "CAFFEINE_MARKERS",
    "DAIRY_MARKERS",
    "DECAF_MARKERS",
    "DRINK_ACTION_VERBS",
    "DRINK_SYNONYMS",
    "FOOD_ACTION_VERBS",
    "FOOD_HEAD_NOUNS",
    "GENERAL_FEELING_KEYWORDS",
    "ITEM_BLACKLIST",
    "KNOWN_BRANDS",
    "MEAL_TIME_SYNONYMS",
    "MEAL_WINDOWS",
    "NON_DAIRY_MARKERS",
    "REFLUX_KEYWORDS",
    "SYMPTOM_GROUPS",
    "clamp_bristol",
    "clamp_severity",
    "contains_synonym",
    "extract_numeric_bristol",
    "extract_numeric_severity",
    "extract_severity_from_adjectives",
    "find_synonym",
    "find_synonym_group",
    "infer_meal_window",
    "matches_checkin",
    "normalize_text",
]
