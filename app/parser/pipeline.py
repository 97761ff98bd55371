"""Orchestrator: fetch URL and run extraction strategies in priority order."""

import logging
from collections.abc import Callable
from typing import NamedTuple

from app.config import Settings, get_settings
from app.llm import ModelClient, get_model_client
from app.models import (
    ExtractionCandidate,
    ModelCallError,
    ParseError,
    RawPage,
    Recipe,
)
from app.parser.fetch import fetch_page
from app.parser.generative import extract_with_model, summarize_comments
from app.parser.heuristic import enhance_ingredients
from app.parser.microdata import extract_microdata
from app.parser.structured import extract_from_html

logger = logging.getLogger(__name__)


class Strategy(NamedTuple):
    """One structural extraction step.

    ``strict`` strategies must be usable on their own output; otherwise the
    usability check runs after the section-heuristic enhancement.
    ``summarize`` asks the model for a comment summary on success.
    """

    name: str
    extract: Callable[[str, str], ExtractionCandidate | None]
    enhance: bool = True
    strict: bool = False
    summarize: bool = False


# Structural strategies, most reliable first. The model is the last resort
# and is handled separately in extract_recipe.
STRATEGIES = (
    Strategy(
        "Structured data (JSON-LD)", extract_from_html, strict=True, summarize=True
    ),
    Strategy("Microdata / heading lists", extract_microdata),
)


def run_strategies(
    page: RawPage, strategies: tuple[Strategy, ...] = STRATEGIES
) -> tuple[Strategy, Recipe] | None:
    """Return the first strategy producing a usable recipe, with its result."""
    for strategy in strategies:
        candidate = strategy.extract(page.html, page.url)
        if candidate is None:
            logger.debug("%s found nothing for %s", strategy.name, page.url)
            continue

        recipe = candidate.to_recipe(page.url)
        if strategy.strict and not _usable(strategy, recipe):
            continue

        if strategy.enhance:
            candidate = enhance_ingredients(candidate, page.html)
            recipe = candidate.to_recipe(page.url)
        if not _usable(strategy, recipe):
            continue

        logger.info("%s succeeded for %s", strategy.name, page.url)
        return strategy, recipe
    return None


def _usable(strategy: Strategy, recipe: Recipe) -> bool:
    if recipe.is_usable():
        return True
    logger.debug(
        "%s below threshold for %s (%d ingredients, %d steps)",
        strategy.name,
        recipe.source_url,
        len(recipe.ingredients),
        len(recipe.instructions),
    )
    return False


async def extract_recipe(
    url: str,
    *,
    model: ModelClient | None = None,
    settings: Settings | None = None,
) -> Recipe:
    """Fetch a URL and extract a recipe from it."""
    settings = settings or get_settings()
    if model is None:
        model = get_model_client(settings)

    logger.info("Parsing recipe from %s", url)
    page = await fetch_page(url, timeout=settings.fetch_timeout)

    result = run_strategies(page)
    if result is not None:
        strategy, recipe = result
        if strategy.summarize and model is not None:
            recipe.comments_summary = await _comments_summary(page, model, settings)
        return recipe

    logger.info("Structural strategies failed for %s, falling back to model", url)
    if model is None:
        logger.warning("No model client configured; cannot extract %s", url)
        raise ModelCallError("Anthropic API key not configured")
    return await extract_with_model(page, model, settings)


async def _comments_summary(
    page: RawPage, model: ModelClient, settings: Settings
) -> str:
    try:
        return await summarize_comments(page, model, settings)
    except ParseError as e:
        logger.warning("Comment summary failed for %s: %s", page.url, e.details)
        return ""
