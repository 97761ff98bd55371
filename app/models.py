from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


MIN_INGREDIENTS = 3
MIN_INSTRUCTIONS = 2

EXTRACTION_FAILED_MESSAGE = (
    "Failed to parse recipe. Make sure the URL is valid and contains a recipe."
)

_TEXT_FIELDS = (
    "title",
    "servings",
    "prep_time",
    "cook_time",
    "source_url",
    "comments_summary",
)
_LIST_FIELDS = ("ingredients", "instructions")


class Recipe(BaseModel):
    """A fully coerced recipe. Serializes with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = ""
    servings: str = ""
    prep_time: str = ""
    cook_time: str = ""
    ingredients: list[str] = []
    instructions: list[str] = []
    source_url: str = ""
    comments_summary: str = ""

    @model_validator(mode="before")
    @classmethod
    def coerce_shape(cls, data: Any) -> Any:
        """Turn missing scalars into "" and missing or non-list arrays into []."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for field in _TEXT_FIELDS:
            for key in (field, to_camel(field)):
                if key in data:
                    data[key] = _coerce_text(data[key])
        for field in _LIST_FIELDS:
            if field in data:
                data[field] = _coerce_list(data[field])
        return data

    @model_validator(mode="after")
    def clean_text(self) -> "Recipe":
        """Strip whitespace from text fields and drop empty list entries."""
        for field in _TEXT_FIELDS:
            setattr(self, field, getattr(self, field).strip())
        self.ingredients = _clean_list(self.ingredients)
        self.instructions = _clean_list(self.instructions)
        return self

    def is_usable(
        self,
        min_ingredients: int = MIN_INGREDIENTS,
        min_instructions: int = MIN_INSTRUCTIONS,
    ) -> bool:
        """True when the recipe is complete enough to skip further fallbacks."""
        return (
            len(self.ingredients) >= min_ingredients
            and len(self.instructions) >= min_instructions
        )


class ExtractionCandidate(BaseModel):
    """Partial output of a single extraction strategy."""

    title: str | None = None
    servings: str | None = None
    prep_time: str | None = None
    cook_time: str | None = None
    ingredients: list[str] | None = None
    instructions: list[str] | None = None
    source_url: str | None = None
    comments_summary: str | None = None

    def to_recipe(self, url: str) -> Recipe:
        data = self.model_dump()
        data["source_url"] = self.source_url or url
        return Recipe(**data)


class RawPage(BaseModel):
    """Markup of a fetched page together with the URL it came from."""

    model_config = ConfigDict(frozen=True)

    html: str
    url: str


class ParseError(Exception):
    def __init__(self, error_type: str, message: str, details: str | None = None):
        self.error_type = error_type
        self.message = message
        self.details = details
        super().__init__(message)


class PageFetchError(ParseError):
    """The source page could not be retrieved (or the URL was rejected)."""


class ModelCallError(ParseError):
    """The generative model could not be reached or returned an error."""

    def __init__(self, details: str, message: str = EXTRACTION_FAILED_MESSAGE):
        super().__init__("model", message, details)


class GenerativeParseError(ParseError):
    """The generative model answered with something that is not recipe JSON."""

    def __init__(self, details: str, message: str = EXTRACTION_FAILED_MESSAGE):
        super().__init__("parse", message, details)


def _coerce_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        value = value[0] if value else ""
        return _coerce_text(value)
    if isinstance(value, dict):
        return ""
    return str(value)


def _coerce_list(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(item) for item in value if isinstance(item, (str, int, float))]


def _clean_list(items: list[str]) -> list[str]:
    cleaned = (item.strip() for item in items)
    return [item for item in cleaned if item]
