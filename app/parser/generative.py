"""Strategy 4: LLM-based extraction and comment summarization."""

import json
import logging
import re
from typing import Any

from app.config import Settings
from app.llm import ModelClient
from app.models import GenerativeParseError, RawPage, Recipe
from app.parser.text import strip_tags

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Recipe"
NO_COMMENTS = "No comments found."

_FENCE_RE = re.compile(r"```(?:json)?\n?", re.IGNORECASE)
_NO_COMMENTS_RE = re.compile(r"^\W*no comments(?: found)?\W*$", re.IGNORECASE)

_EXTRACTION_PROMPT = """\
Extract recipe information from this HTML content. Look for recipe cards, \
structured data, or recipe sections.

{html}

Extract and return ONLY a JSON object with this exact structure:
{{
  "title": "Recipe title",
  "servings": "Number of servings (e.g., '16 brownies', '4 servings')",
  "prepTime": "Prep time (e.g., '5 minutes', '15 mins')",
  "cookTime": "Cook time (e.g., '45 minutes', '1 hour')",
  "ingredients": ["1 1/2 cups granulated sugar", "3/4 cup all-purpose flour"],
  "instructions": ["Preheat the oven to 325°F", "Bake for 40 to 48 minutes"],
  "sourceUrl": "{url}",
  "commentsSummary": "Short summary of tips from reader comments, or \
'{no_comments}'"
}}

Instructions for extraction:
- Look for ingredients lists (often marked with "Ingredients" heading)
- Keep ingredient sub-headings such as "For the sauce:" as their own lines
- Look for numbered or bulleted instruction steps
- Extract prep/cook times from recipe metadata or headings
- Include exact measurements and quantities
- Keep instructions as separate steps
- Ignore ads, equipment lists, and notes unless they're critical instructions
- Summarize useful tips or modifications from user comments in 2-3 sentences

Return ONLY valid JSON. No other text."""

_COMMENTS_PROMPT = """\
Below is the text near the end of a recipe page, where reader comments \
usually appear.

{text}

Summarize the most useful tips, substitutions and modifications that readers \
report in 2-3 sentences of plain prose. Ignore praise without advice, spam and \
replies from the author that add nothing new.

If there are no reader comments with tips, reply with exactly: {no_comments}"""


def build_extraction_prompt(html: str, url: str, limit: int = 15000) -> str:
    return _EXTRACTION_PROMPT.format(
        html=html[:limit], url=url, no_comments=NO_COMMENTS
    )


def build_comments_prompt(html: str, limit: int = 8000) -> str:
    """Prompt over the tail of the page text, where comment threads live."""
    text = strip_tags(_drop_scripts(html))
    return _COMMENTS_PROMPT.format(text=text[-limit:], no_comments=NO_COMMENTS)


def strip_code_fences(text: str) -> str:
    """Remove Markdown code fences the model sometimes wraps JSON in."""
    return _FENCE_RE.sub("", text or "").strip()


def parse_model_json(text: str) -> dict:
    """Parse a model response into a dict, raising GenerativeParseError."""
    cleaned = strip_code_fences(text)
    try:
        data = json.loads(cleaned)
    except ValueError:
        logger.warning("Model returned invalid JSON: %.200s", cleaned)
        raise GenerativeParseError("Invalid JSON response from AI")
    if not isinstance(data, dict):
        logger.warning("Model returned JSON %s, expected object", type(data).__name__)
        raise GenerativeParseError("Invalid JSON response from AI")
    return data


def normalize_summary(text: Any) -> str:
    """Map the "no comments" sentinel (and anything non-textual) to ""."""
    if not isinstance(text, str):
        return ""
    text = text.strip()
    if _NO_COMMENTS_RE.match(text):
        return ""
    return text


def coerce_recipe(data: dict, url: str) -> Recipe:
    """Force a model-produced dict into the Recipe shape."""
    return Recipe(
        title=_string(data.get("title")) or DEFAULT_TITLE,
        servings=_string(data.get("servings")),
        prep_time=_string(data.get("prepTime")),
        cook_time=_string(data.get("cookTime")),
        ingredients=_strings(data.get("ingredients")),
        instructions=_strings(data.get("instructions")),
        source_url=_string(data.get("sourceUrl")) or url,
        comments_summary=normalize_summary(data.get("commentsSummary")),
    )


async def extract_with_model(
    page: RawPage, model: ModelClient, settings: Settings
) -> Recipe:
    """Ask the model for the whole recipe; raises on call or parse failure."""
    prompt = build_extraction_prompt(page.html, page.url, settings.html_prefix_chars)
    response = await model.complete(prompt, settings.extraction_max_tokens)
    recipe = coerce_recipe(parse_model_json(response), page.url)
    logger.info(
        "Model extracted %d ingredients, %d steps for %s",
        len(recipe.ingredients),
        len(recipe.instructions),
        page.url,
    )
    return recipe


async def summarize_comments(
    page: RawPage, model: ModelClient, settings: Settings
) -> str:
    prompt = build_comments_prompt(page.html, settings.comments_text_chars)
    response = await model.complete(prompt, settings.comments_max_tokens)
    return normalize_summary(strip_code_fences(response))


def _drop_scripts(html: str) -> str:
    return re.sub(
        r"<(script|style)\b.*?</\1\s*>", " ", html, flags=re.IGNORECASE | re.DOTALL
    )


def _string(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [s for s in (_string(item) for item in value) if s.strip()]
