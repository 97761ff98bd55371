"""Strategy 3: Section-aware ingredient extraction from unstructured HTML.

Many recipe blogs split ingredients into author-defined groups ("For the
sauce:", "For the topping:") that JSON-LD and microdata flatten away.  This
module recovers those groups from the region between the "Ingredients" and
"Instructions" headings, either from recipe-card checkbox bullets or from the
sequence of sub-headings and lists.
"""

import logging
import re

from app.models import ExtractionCandidate
from app.parser.patterns import find_headings, list_items
from app.parser.text import strip_tags

logger = logging.getLogger(__name__)

CHECKBOX_GLYPH = "\u25a2"  # white square with rounded corners
MAX_BULLET_LENGTH = 180
STAPLE_MAX_LENGTH = 40
MAX_HEADER_LENGTH = 60
MIN_SECTION_ITEMS = 3

COOKING_VERBS = (
    "add",
    "place",
    "roast",
    "sauté",
    "saute",
    "simmer",
    "bring",
    "blitz",
    "serve",
    "preheat",
    "squeeze",
    "pour",
    "bake",
    "cook",
    "arrange",
)
MEASUREMENT_UNITS = (
    "cups?",
    "tsp",
    "tbsp",
    "teaspoons?",
    "tablespoons?",
    "g",
    "kg",
    "ml",
    "l",
    "oz",
    "lbs?",
    "cloves?",
    "leaf",
    "leaves",
    "sheets?",
    "bunch(?:es)?",
    "sticks?",
    "pinch(?:es)?",
    "litres?",
    "liters?",
)
STAPLE_INGREDIENTS = (
    "salt",
    "pepper",
    "cheese",
    "basil",
    "cream",
    "tomato",
    "onion",
    "garlic",
)
SAUCE_KEYWORDS = ("sauce", "ragu", "ragù", "bolognese", "lasagn")
# Verb forms that name ingredients or amounts ("baking soda", "2 servings")
VERB_NOUN_FORMS = ("baking", "servings?")

_VULGAR_FRACTIONS = "¼½¾⅐⅑⅒⅓⅔⅕⅖⅗⅘⅙⅚⅛⅜⅝⅞"


def _verb_forms(verb: str) -> str:
    # "place" also inflects as "placing"
    forms = rf"{verb}(?:s|es|d|ed|ing)?"
    if verb.endswith("e"):
        forms += rf"|{verb[:-1]}ing"
    return forms


_INGREDIENTS_HEADING_RE = re.compile(r"\bingredients\b", re.IGNORECASE)
_INSTRUCTIONS_HEADING_RE = re.compile(
    r"\b(?:instructions|method|directions)\b", re.IGNORECASE
)
_VERB_RE = re.compile(
    r"\b(?!(?:" + "|".join(VERB_NOUN_FORMS) + r")\b)(?:"
    + "|".join(_verb_forms(v) for v in COOKING_VERBS)
    + r")\b",
    re.IGNORECASE,
)
_MEASUREMENT_RE = re.compile(
    rf"\d|[{_VULGAR_FRACTIONS}]|\b(?:" + "|".join(MEASUREMENT_UNITS) + r")\b",
    re.IGNORECASE,
)
_STAPLE_RE = re.compile(r"\b(?:" + "|".join(STAPLE_INGREDIENTS) + r")", re.IGNORECASE)
_SAUCE_RE = re.compile("|".join(SAUCE_KEYWORDS), re.IGNORECASE)
_CHECKBOX_ENTITY_RE = re.compile(r"&#(?:9634|x25a2);", re.IGNORECASE)

# A trailing "For the sauce:" style label, or failing that a run of
# capitalized words ending in a colon ("Tomato Sauce:").
_FOR_HEADER_RE = re.compile(r"\b(For\s[^:.!?▢]{1,50}:)\s*$", re.IGNORECASE)
_CAPITAL_HEADER_RE = re.compile(
    r"(?<![\w'’])([A-Z][\w'’()/-]*(?:\s+(?:[A-Z][\w'’()/-]*|and|or|of|the|with|&)){0,5}\s*:)\s*$"
)

_SECTION_WALK_RE = re.compile(
    r"<h([2-5])\b[^>]*>(.*?)</h\1\s*>|<(ul|ol)\b[^>]*>(.*?)</\3\s*>",
    re.IGNORECASE | re.DOTALL,
)


# -- Ingredient classifier --


def is_too_long(text: str, max_length: int = MAX_BULLET_LENGTH) -> bool:
    return len(text) > max_length


def has_cooking_verb(text: str) -> bool:
    return bool(_VERB_RE.search(text))


def has_measurement(text: str) -> bool:
    """Digits, vulgar fraction glyphs or a unit word such as cup or tbsp."""
    return bool(_MEASUREMENT_RE.search(text))


def ends_like_sentence(text: str) -> bool:
    return text.rstrip().endswith(".")


def is_short_staple(text: str, max_length: int = STAPLE_MAX_LENGTH) -> bool:
    return len(text) <= max_length and bool(_STAPLE_RE.search(text))


def looks_like_ingredient(
    text: str,
    max_length: int = MAX_BULLET_LENGTH,
    staple_max_length: int = STAPLE_MAX_LENGTH,
) -> bool:
    """Decide whether a bullet reads like an ingredient line rather than prose."""
    text = text.strip()
    if not text or is_too_long(text, max_length):
        return False
    if has_cooking_verb(text):
        return False
    measured = has_measurement(text)
    if ends_like_sentence(text) and not measured:
        return False
    return measured or is_short_staple(text, staple_max_length)


# -- Region detection --


def ingredient_region(html: str) -> str | None:
    """Markup between the Ingredients heading and the next instructions heading."""
    headings = find_headings(html)
    start = next(
        (h for h in headings if _INGREDIENTS_HEADING_RE.search(h.text)), None
    )
    if start is None:
        return None

    end = next(
        (
            h
            for h in headings
            if h.start >= start.end and _INSTRUCTIONS_HEADING_RE.search(h.text)
        ),
        None,
    )
    return html[start.end : end.start if end else len(html)]


# -- Extraction --


def extract_sections(html: str) -> list[str] | None:
    """Return the ingredient list with section labels, or None if not found."""
    region = ingredient_region(html)
    if region is None:
        logger.debug("No ingredients heading found")
        return None

    region = _CHECKBOX_ENTITY_RE.sub(CHECKBOX_GLYPH, region)
    if CHECKBOX_GLYPH in region:
        lines = _split_checkbox_bullets(strip_tags(region))
    else:
        lines = _walk_sections(region)

    logger.debug("Section heuristic found %d lines", len(lines))
    return lines or None


def _split_checkbox_bullets(text: str) -> list[str]:
    parts = text.split(CHECKBOX_GLYPH)
    lines: list[str] = []

    for i in range(1, len(parts)):
        header = _trailing_header(parts[i - 1])
        if header and (not lines or lines[-1] != header):
            lines.append(header)

        bullet = parts[i]
        own_header = _trailing_header(bullet)
        if own_header:
            bullet = bullet.rstrip()[: -len(own_header)]
        bullet = bullet.strip()

        if looks_like_ingredient(bullet):
            lines.append(bullet)
    return lines


def _trailing_header(text: str) -> str | None:
    text = text.rstrip()
    if not text.endswith(":"):
        return None
    m = _FOR_HEADER_RE.search(text) or _CAPITAL_HEADER_RE.search(text)
    if m is None or len(m.group(1)) > MAX_HEADER_LENGTH:
        return None
    return m.group(1)


def _walk_sections(region: str) -> list[str]:
    lines: list[str] = []
    label = None

    for m in _SECTION_WALK_RE.finditer(region):
        if m.group(1):
            text = strip_tags(m.group(2))
            if text.endswith(":"):
                label = text
            elif _SAUCE_RE.search(text):
                label = f"{text}:"
            else:
                label = None
            continue

        items = list_items(m.group(4))
        if not items:
            continue
        if label:
            lines.append(label)
            label = None
        lines.extend(items)
    return lines


def enhance_ingredients(
    candidate: ExtractionCandidate, html: str
) -> ExtractionCandidate:
    """Swap in the sectioned ingredient list when it is at least as complete."""
    sections = extract_sections(html)
    if not sections:
        return candidate

    current = candidate.ingredients or []
    if len(sections) >= max(len(current), MIN_SECTION_ITEMS):
        logger.debug(
            "Using %d sectioned ingredients over %d extracted",
            len(sections),
            len(current),
        )
        return candidate.model_copy(update={"ingredients": sections})
    return candidate
