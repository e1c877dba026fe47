import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from avventura.config import Settings
from avventura.errors import AvventuraError
from avventura.llm import LLM, AnthropicLLM
from avventura.storage import StoryStore
from backend.routes import router

logger = logging.getLogger(__name__)


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status)


def _describe(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request body"
    first = errors[0]
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    return f"Invalid request body: {location} {first.get('msg', '')}".strip()


def create_app(
    settings: Settings | None = None,
    store: StoryStore | None = None,
    llm: LLM | None = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    store = store or StoryStore(settings.database_url)
    llm = llm or AnthropicLLM(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.store.close()

    app = FastAPI(title="Avventura", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.llm = llm
    app.include_router(router, prefix="/api")

    @app.exception_handler(AvventuraError)
    async def domain_error(request: Request, exc: AvventuraError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return _error(400, _describe(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("%s %s crashed", request.method, request.url.path)
        return _error(500, "Unknown error occurred")

    return app


# Default app instance for uvicorn (uses DATABASE_URL / ANTHROPIC_* env vars)
app = create_app()
