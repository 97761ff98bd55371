"""Strategy 1: Extract recipe from Schema.org JSON-LD blocks."""

import json
import logging
from collections.abc import Iterator
from typing import Any

from app.models import ExtractionCandidate
from app.parser.patterns import find_json_ld_blocks
from app.parser.text import decode_entities

logger = logging.getLogger(__name__)


def extract_from_html(html: str, url: str) -> ExtractionCandidate | None:
    """Try to extract a recipe from the first JSON-LD Recipe node in the page."""
    recipe_obj = find_recipe_node(html)
    if recipe_obj is None:
        logger.debug("No JSON-LD recipe node found")
        return None

    ingredients = _normalize_ingredients(recipe_obj.get("recipeIngredient"))
    steps = normalize_instructions(recipe_obj.get("recipeInstructions"))

    if not ingredients or not steps:
        logger.debug(
            "JSON-LD recipe incomplete (%d ingredients, %d steps)",
            len(ingredients),
            len(steps),
        )
        return None

    # Handle yield/servings
    servings = recipe_obj.get("recipeYield")
    if isinstance(servings, list):
        servings = servings[0] if servings else None
    if servings is not None:
        servings = decode_entities(str(servings))

    return ExtractionCandidate(
        title=_text(recipe_obj.get("name")) or _text(recipe_obj.get("headline")),
        source_url=url,
        servings=servings,
        prep_time=_text(recipe_obj.get("prepTime")),
        cook_time=(
            _text(recipe_obj.get("cookTime")) or _text(recipe_obj.get("totalTime"))
        ),
        ingredients=ingredients,
        instructions=steps,
    )


def find_recipe_node(html: str) -> dict | None:
    """Return the first Recipe node across all JSON-LD blocks, or None."""
    for block in find_json_ld_blocks(html):
        try:
            data = json.loads(block.strip())
        except ValueError:
            logger.debug("Skipping malformed JSON-LD block")
            continue

        for node in _iter_nodes(data):
            if _is_recipe(node):
                return node
    return None


def _iter_nodes(data: Any) -> Iterator[dict]:
    """Flatten arrays and ``@graph`` members into a stream of objects."""
    if isinstance(data, list):
        for item in data:
            yield from _iter_nodes(item)
    elif isinstance(data, dict):
        yield data
        graph = data.get("@graph")
        if graph is not None:
            yield from _iter_nodes(graph)


def _is_recipe(node: dict) -> bool:
    node_type = node.get("@type")
    if isinstance(node_type, list):
        return "Recipe" in node_type
    return node_type == "Recipe"


def normalize_instructions(raw: Any) -> list[str]:
    """Normalize recipeInstructions into a flat list of step strings.

    Accepted shapes:
      - a single text block, split on newlines
      - a list of strings
      - a list of HowToStep objects (``text``, else ``name``)
      - HowToSection objects whose ``itemListElement`` holds any of the above
    """
    if isinstance(raw, str):
        return [s.strip() for s in decode_entities(raw).split("\n") if s.strip()]
    if isinstance(raw, dict):
        raw = [raw]
    if not isinstance(raw, list):
        return []

    steps = []
    for item in raw:
        steps.extend(_step_texts(item))
    return [s for s in steps if s]


def _step_texts(item: Any) -> list[str]:
    if isinstance(item, str):
        return [decode_entities(item).strip()]
    if not isinstance(item, dict):
        return []

    # HowToSection
    section_steps = item.get("itemListElement")
    if isinstance(section_steps, list):
        return [text for sub in section_steps for text in _step_texts(sub)]

    # HowToStep
    text = _text(item.get("text")) or _text(item.get("name"))
    return [text.strip()] if text else []


def _normalize_ingredients(raw: Any) -> list[str]:
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        return []
    return [
        decode_entities(item) for item in raw if isinstance(item, str) and item.strip()
    ]


def _text(value: Any) -> str | None:
    if isinstance(value, str):
        return decode_entities(value)
    if isinstance(value, (int, float)):
        return str(value)
    return None
