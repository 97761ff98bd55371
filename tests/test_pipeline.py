"""Tests for the recipe extraction pipeline."""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from app.config import Settings
from app.models import (
    GenerativeParseError,
    ModelCallError,
    PageFetchError,
    ParseError,
    RawPage,
)
from app.parser.pipeline import STRATEGIES, Strategy, extract_recipe, run_strategies

# -- Fixtures: sample HTML snippets --

JSONLD_RECIPE_HTML = """
<html><head>
<script type="application/ld+json">
{
    "@context": "https://schema.org",
    "@type": "Recipe",
    "name": "Test Cookies",
    "recipeIngredient": ["1 cup flour", "1/2 cup sugar", "2 eggs"],
    "recipeInstructions": [
        {"@type": "HowToStep", "text": "Mix flour and sugar."},
        {"@type": "HowToStep", "text": "Add eggs and stir."},
        {"@type": "HowToStep", "text": "Bake at 350F for 12 minutes."}
    ],
    "recipeYield": "24 cookies"
}
</script>
</head><body>
<div class="ad">Buy stuff</div>
<h2>Comments</h2><p>I used brown sugar and it was great.</p>
</body></html>
"""

# Two JSON-LD ingredients, five steps: below the usability threshold
JSONLD_TWO_INGREDIENTS_HTML = """
<html><head>
<script type="application/ld+json">
{
    "@type": "Recipe",
    "name": "Too Short",
    "recipeIngredient": ["bread", "butter"],
    "recipeInstructions": ["One.", "Two.", "Three.", "Four.", "Five."]
}
</script>
</head><body>
<h2>Ingredients</h2>
<ul><li>2 slices bread</li><li>1 tbsp butter</li><li>1 pinch salt</li></ul>
<h2>Instructions</h2>
<ol><li>Toast the bread.</li><li>Butter it.</li></ol>
</body></html>
"""

JSONLD_WITH_SECTIONS_HTML = """
<html><head>
<script type="application/ld+json">
{
    "@type": "Recipe",
    "name": "Lasagne",
    "recipeIngredient": ["500 g beef", "1 onion", "500 ml milk"],
    "recipeInstructions": ["Make the ragu.", "Make the sauce.", "Layer and bake."]
}
</script>
</head><body>
<h2>Ingredients</h2>
<h3>For the ragu:</h3>
<ul><li>500 g beef</li><li>1 onion</li></ul>
<h3>For the white sauce:</h3>
<ul><li>500 ml milk</li></ul>
<h2>Method</h2>
<ol><li>Make the ragu.</li></ol>
</body></html>
"""

JSONLD_WITH_SHORT_HEADING_LIST_HTML = """
<html><head>
<script type="application/ld+json">
{
    "@type": "Recipe",
    "name": "Pancakes",
    "recipeIngredient": ["1 cup flour", "1 egg", "1 cup milk", "1 tbsp sugar"],
    "recipeInstructions": ["Mix.", "Fry."]
}
</script>
</head><body>
<h2>Ingredients</h2>
<ul><li>flour</li><li>eggs</li><li>milk</li></ul>
<h2>Instructions</h2>
</body></html>
"""

HEURISTIC_FALLBACK_HTML = """
<html><body>
<h1>Grandma's Soup</h1>
<h2>Ingredients</h2>
<ul><li>1 l water</li><li>1 tsp salt</li><li>2 carrots</li></ul>
<h2>Directions</h2>
<ol><li>Boil water.</li><li>Add salt and carrots.</li></ol>
</body></html>
"""

MALFORMED_JSONLD_FALLBACK_HTML = """
<html><head>
<script type="application/ld+json">
{"@type": "Recipe", "name": "Broken", "recipeIngredient": ["a", "b", "c"],}
</script>
</head><body>
<span itemprop="name">Microdata Pie</span>
<span itemprop="recipeIngredient">1 crust</span>
<span itemprop="recipeIngredient">3 apples</span>
<span itemprop="recipeIngredient">1 cup sugar</span>
<p itemprop="recipeInstructions">Fill the crust.</p>
<p itemprop="recipeInstructions">Bake.</p>
</body></html>
"""

NO_RECIPE_HTML = """
<html><head><title>Just a Blog</title></head>
<body><p>No recipe here.</p></body></html>
"""

MODEL_RECIPE = {
    "title": "Model Soup",
    "servings": "4",
    "prepTime": "10 minutes",
    "cookTime": "30 minutes",
    "ingredients": ["water", "salt"],
    "instructions": ["Boil.", "Season."],
    "sourceUrl": "https://example.com/blog",
    "commentsSummary": "No comments found.",
}

URL = "https://example.com/recipe"


class FakeModel:
    def __init__(self, *replies: str):
        self.replies = list(replies)
        self.calls = []

    async def complete(self, prompt: str, max_tokens: int) -> str:
        self.calls.append((prompt, max_tokens))
        return self.replies.pop(0)


class FailingModel:
    def __init__(self):
        self.calls = 0

    async def complete(self, prompt: str, max_tokens: int) -> str:
        self.calls += 1
        raise ModelCallError("Model request timed out")


def _make_mock_response(html: str, status_code: int = 200) -> httpx.Response:
    """Create a mock httpx.Response with the given HTML content."""
    return httpx.Response(
        status_code=status_code,
        text=html,
        request=httpx.Request("GET", "https://example.com"),
    )


def _settings(**kwargs) -> Settings:
    return Settings(anthropic_api_key=None, **kwargs)


@pytest.fixture(autouse=True)
def allow_public_dns():
    with patch(
        "app.parser.fetch.socket.getaddrinfo",
        return_value=[(2, 1, 6, "", ("93.184.216.34", 0))],
    ):
        yield


@pytest.fixture()
def mock_http():
    """Patch httpx so page fetches return whatever the test configures."""
    with patch("app.parser.fetch.httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client_cls.return_value.__aenter__.return_value = mock_client
        yield mock_client


def _page(html: str) -> RawPage:
    return RawPage(html=html, url=URL)


# -- Tests: strategy loop --


def test_strategy_order():
    assert [s.extract.__name__ for s in STRATEGIES] == [
        "extract_from_html",
        "extract_microdata",
    ]


def test_run_strategies_jsonld_first():
    strategy, recipe = run_strategies(_page(JSONLD_RECIPE_HTML))
    assert strategy is STRATEGIES[0]
    assert recipe.ingredients == ["1 cup flour", "1/2 cup sugar", "2 eggs"]
    assert recipe.instructions[-1] == "Bake at 350F for 12 minutes."
    assert recipe.source_url == URL


def test_run_strategies_rejects_below_threshold_jsonld():
    """Two JSON-LD ingredients fall through to the heading-list strategy."""
    strategy, recipe = run_strategies(_page(JSONLD_TWO_INGREDIENTS_HTML))
    assert strategy is STRATEGIES[1]
    assert recipe.ingredients == ["2 slices bread", "1 tbsp butter", "1 pinch salt"]
    assert recipe.instructions == ["Toast the bread.", "Butter it."]


def test_run_strategies_below_threshold_without_fallback():
    html = JSONLD_TWO_INGREDIENTS_HTML.split("<body>")[0]
    assert run_strategies(_page(html)) is None


def test_sections_override_jsonld_ingredients():
    _, recipe = run_strategies(_page(JSONLD_WITH_SECTIONS_HTML))
    assert recipe.ingredients == [
        "For the ragu:",
        "500 g beef",
        "1 onion",
        "For the white sauce:",
        "500 ml milk",
    ]


def test_jsonld_ingredients_win_over_shorter_heading_list():
    _, recipe = run_strategies(_page(JSONLD_WITH_SHORT_HEADING_LIST_HTML))
    assert recipe.ingredients == ["1 cup flour", "1 egg", "1 cup milk", "1 tbsp sugar"]


def test_malformed_jsonld_falls_through_to_microdata():
    strategy, recipe = run_strategies(_page(MALFORMED_JSONLD_FALLBACK_HTML))
    assert strategy is STRATEGIES[1]
    assert recipe.title == "Microdata Pie"
    assert recipe.instructions == ["Fill the crust.", "Bake."]


def test_custom_strategy_list():
    calls = []

    def first(html, url):
        calls.append("first")
        return None

    strategies = (Strategy("first", first), STRATEGIES[1])
    strategy, _ = run_strategies(_page(HEURISTIC_FALLBACK_HTML), strategies)
    assert calls == ["first"]
    assert strategy is strategies[1]


def test_run_strategies_is_idempotent():
    first = run_strategies(_page(JSONLD_WITH_SECTIONS_HTML))[1]
    second = run_strategies(_page(JSONLD_WITH_SECTIONS_HTML))[1]
    assert first.model_dump_json() == second.model_dump_json()


# -- Tests: extract_recipe (mocked HTTP) --


@pytest.mark.anyio
async def test_pipeline_jsonld_success_without_model(mock_http):
    mock_http.get.return_value = _make_mock_response(JSONLD_RECIPE_HTML)

    recipe = await extract_recipe(URL, settings=_settings())
    assert recipe.title == "Test Cookies"
    assert recipe.servings == "24 cookies"
    assert recipe.comments_summary == ""


@pytest.mark.anyio
async def test_pipeline_jsonld_adds_comment_summary(mock_http):
    mock_http.get.return_value = _make_mock_response(JSONLD_RECIPE_HTML)
    model = FakeModel("Readers swap in brown sugar.")

    recipe = await extract_recipe(URL, model=model, settings=_settings())
    assert recipe.comments_summary == "Readers swap in brown sugar."
    assert len(model.calls) == 1
    assert "I used brown sugar" in model.calls[0][0]


@pytest.mark.anyio
async def test_pipeline_comment_summary_failure_is_not_fatal(mock_http):
    mock_http.get.return_value = _make_mock_response(JSONLD_RECIPE_HTML)

    recipe = await extract_recipe(URL, model=FailingModel(), settings=_settings())
    assert recipe.title == "Test Cookies"
    assert recipe.comments_summary == ""


@pytest.mark.anyio
async def test_pipeline_microdata_skips_model(mock_http):
    mock_http.get.return_value = _make_mock_response(HEURISTIC_FALLBACK_HTML)
    model = FakeModel()

    recipe = await extract_recipe(URL, model=model, settings=_settings())
    assert recipe.ingredients == ["1 l water", "1 tsp salt", "2 carrots"]
    assert recipe.comments_summary == ""
    assert model.calls == []


@pytest.mark.anyio
async def test_pipeline_falls_back_to_model(mock_http):
    mock_http.get.return_value = _make_mock_response(NO_RECIPE_HTML)
    model = FakeModel("```json\n" + json.dumps(MODEL_RECIPE) + "\n```")

    recipe = await extract_recipe(
        "https://example.com/blog", model=model, settings=_settings()
    )
    assert recipe.title == "Model Soup"
    assert recipe.instructions == ["Boil.", "Season."]
    assert recipe.comments_summary == ""
    assert len(model.calls) == 1


@pytest.mark.anyio
async def test_pipeline_model_invalid_json_raises(mock_http):
    mock_http.get.return_value = _make_mock_response(NO_RECIPE_HTML)
    model = FakeModel("There is no recipe on this page.")

    with pytest.raises(GenerativeParseError, match="Failed to parse recipe"):
        await extract_recipe(URL, model=model, settings=_settings())


@pytest.mark.anyio
async def test_pipeline_without_credentials_raises(mock_http):
    """No structural result and no model: an error, never an empty recipe."""
    mock_http.get.return_value = _make_mock_response(NO_RECIPE_HTML)

    with pytest.raises(ModelCallError) as exc_info:
        await extract_recipe(URL, settings=_settings())
    assert "API key" in exc_info.value.details


@pytest.mark.anyio
async def test_pipeline_model_failure_raises(mock_http):
    mock_http.get.return_value = _make_mock_response(NO_RECIPE_HTML)

    with pytest.raises(ParseError, match="Make sure the URL is valid"):
        await extract_recipe(URL, model=FailingModel(), settings=_settings())


@pytest.mark.anyio
async def test_pipeline_sends_browser_headers(mock_http):
    mock_http.get.return_value = _make_mock_response(JSONLD_RECIPE_HTML)

    with patch("app.parser.fetch.httpx.AsyncClient") as mock_client_cls:
        mock_client_cls.return_value.__aenter__.return_value = mock_http
        await extract_recipe(URL, settings=_settings(fetch_timeout=3.0))

    kwargs = mock_client_cls.call_args.kwargs
    assert "Mozilla/5.0" in kwargs["headers"]["User-Agent"]
    assert kwargs["headers"]["Cache-Control"] == "no-cache"
    assert kwargs["timeout"] == 3.0


@pytest.mark.anyio
async def test_pipeline_timeout(mock_http):
    mock_http.get.side_effect = httpx.TimeoutException("timed out")
    model = FakeModel()

    with pytest.raises(PageFetchError, match="timed out"):
        await extract_recipe(URL, model=model, settings=_settings())
    assert model.calls == []


@pytest.mark.anyio
async def test_pipeline_http_error(mock_http):
    mock_http.get.return_value = _make_mock_response("", status_code=403)

    with pytest.raises(PageFetchError, match="blocked the request") as exc_info:
        await extract_recipe(URL, settings=_settings())
    assert exc_info.value.error_type == "http"
    assert exc_info.value.details == "HTTP 403"


@pytest.mark.anyio
async def test_pipeline_not_found(mock_http):
    mock_http.get.return_value = _make_mock_response("", status_code=404)

    with pytest.raises(PageFetchError, match="Page not found"):
        await extract_recipe(URL, settings=_settings())


@pytest.mark.anyio
async def test_pipeline_connect_error(mock_http):
    mock_http.get.side_effect = httpx.ConnectError("refused")

    with pytest.raises(PageFetchError, match="Couldn't connect"):
        await extract_recipe(URL, settings=_settings())


@pytest.mark.anyio
async def test_pipeline_bad_url():
    with pytest.raises(PageFetchError, match="Only http and https"):
        await extract_recipe("ftp://example.com/recipe", settings=_settings())
