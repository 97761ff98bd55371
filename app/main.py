"""FastAPI application exposing the recipe extractor."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import get_settings
from app.models import PageFetchError, ParseError
from app.parser.pipeline import extract_recipe

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
app = FastAPI(title="Recipe Extractor")
app.state.limiter = limiter


class ParseRequest(BaseModel):
    url: str | None = None


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        {
            "error": (
                "You're sending too many requests. Please wait a moment and try again."
            )
        },
        status_code=429,
    )


@app.exception_handler(RequestValidationError)
async def invalid_body_handler(request: Request, exc: RequestValidationError):
    logger.info("Rejected request body: %s", exc.errors())
    return JSONResponse({"error": "URL is required"}, status_code=400)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@app.post("/api/parse-recipe")
@limiter.limit(get_settings().rate_limit)
async def parse_recipe(request: Request, body: ParseRequest):
    url = (body.url or "").strip()
    if not url:
        return JSONResponse({"error": "URL is required"}, status_code=400)
    try:
        result = await extract_recipe(url)
    except ParseError as e:
        logger.warning("ParseError [%s] for %s: %s", e.error_type, url, e.message)
        return JSONResponse(
            {"error": e.message, "details": e.details},
            status_code=_status_for(e),
        )
    logger.info("Served recipe %r from %s", result.title, url)
    return JSONResponse(result.model_dump(by_alias=True))


def _status_for(error: ParseError) -> int:
    if error.error_type == "validation":
        return 400
    if isinstance(error, PageFetchError):
        return 502
    return 500
