import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .repositories import Repository, create_repository
from .routers import todos as todos_router
from .services import TodoService
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "todos",
        "description": "Create, update, toggle and soft-delete Todo items with a full audit trail.",
    },
]


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return a consistent JSON structure for request validation errors.

    Response format:
        {
            "error": "ValidationError",
            "detail": [... pydantic/fastapi error details ...],
            "message": "Request validation failed"
        }
    """
    return JSONResponse(
        status_code=422,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "detail": _jsonable_errors(exc),
        },
    )


def _jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry the raw ValueError raised by a field validator
    errors = []
    for err in exc.errors():
        err = dict(err)
        if "ctx" in err:
            err["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        errors.append(err)
    return errors


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None, repository: Optional[Repository] = None) -> FastAPI:
    """
    Build the FastAPI application.

    The repository is constructed once here (or injected, e.g. by tests) and
    handed to a TodoService stored on app.state for the routers to use.
    """
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)

    if repository is None:
        repository = create_repository(settings)
    logger.info("Using %s todo repository", type(repository).__name__)

    app = FastAPI(
        title="Todo Audit Backend",
        description="Backend API for Todo items with soft delete and an append-only audit trail.",
        version="0.1.0",
        openapi_tags=openapi_tags,
    )
    app.state.settings = settings
    app.state.todo_service = TodoService(repository)

    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # PUBLIC_INTERFACE
    @app.get("/", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health and the storage backend.
        """
        return {"message": "Healthy", "backend": settings.persistence_backend}

    app.include_router(todos_router.router)
    return app


app = create_app()
