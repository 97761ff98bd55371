"""Strategy 2: Extract recipe from itemprop microdata and heading-list markup."""

import logging
import re

from app.models import ExtractionCandidate
from app.parser.patterns import (
    find_headings,
    find_itemprop,
    find_list_by_attribute,
    find_lists,
)

logger = logging.getLogger(__name__)

_LIST_KEYWORDS = {
    "ingredients": ("ingredient",),
    "instructions": ("instruction", "direction", "method", "step"),
    "directions": ("direction", "instruction", "method", "step"),
    "method": ("method", "instruction", "direction", "step"),
}
_INSTRUCTION_HEADINGS = ("Instructions", "Directions", "Method")
_STEP_PROPS = ("step", "howtostep")


def extract_microdata(html: str, url: str) -> ExtractionCandidate | None:
    """Try to extract a recipe from itemprop attributes or labelled lists."""
    ingredients = (
        extract_by_itemprop(html, "recipeIngredient")
        or extract_by_itemprop(html, "ingredients")
        or extract_list_after_heading(html, "Ingredients")
    )

    steps = extract_by_itemprop(html, "recipeInstructions")
    if not steps:
        steps = [s for prop in _STEP_PROPS for s in extract_by_itemprop(html, prop)]
    if not steps:
        for word in _INSTRUCTION_HEADINGS:
            steps = extract_list_after_heading(html, word)
            if steps:
                break

    logger.debug(
        "Microdata found %d ingredients, %d steps", len(ingredients), len(steps)
    )

    if not ingredients and not steps:
        return None

    return ExtractionCandidate(
        title=_first(html, "name"),
        source_url=url,
        servings=_first(html, "recipeYield"),
        prep_time=_first(html, "prepTime"),
        cook_time=_first(html, "cookTime") or _first(html, "totalTime"),
        ingredients=ingredients,
        instructions=steps,
    )


def extract_by_itemprop(html: str, prop_name: str) -> list[str]:
    """All values tagged with ``itemprop="prop_name"``, in document order."""
    return find_itemprop(html, prop_name)


def extract_list_after_heading(html: str, heading_word: str) -> list[str]:
    """Find the ``<li>`` texts of the first list following a matching heading.

    Falls back to a list whose class or id mentions the heading's keyword when
    no heading matches (or the heading is not followed by a list).
    """
    wanted = heading_word.strip().lower()
    for heading in find_headings(html):
        if heading.text.rstrip(":").strip().lower() != wanted:
            continue
        for block in find_lists(html[heading.end :]):
            if block.items:
                return block.items
        break

    keywords = _LIST_KEYWORDS.get(wanted, (re.sub(r"s$", "", wanted),))
    return find_list_by_attribute(html, keywords)


def _first(html: str, prop_name: str) -> str:
    values = extract_by_itemprop(html, prop_name)
    return values[0] if values else ""
