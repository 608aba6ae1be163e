"""
Main application entry point for the LearnQuest assessment service.

Usage:
    - Direct: python -m learnquest.main
    - ASGI server: uvicorn learnquest.main:app
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from learnquest import __version__
from learnquest.assessments.collaborators import (
    CourseDirectory,
    InMemoryCourseDirectory,
    InMemoryProgressTracker,
    ProgressTracker,
)
from learnquest.assessments.controllers import router as assessments_router
from learnquest.assessments.services import build_services
from learnquest.common.config import AppConfig, get_config
from learnquest.common.exceptions import AssessmentError, DatabaseError, ErrorKind, FailureReason
from learnquest.common.logger import app_logger, configure_logger
from learnquest.database.init_db import (
    close_database,
    create_schema,
    get_session_factory,
    initialize_database,
    run_migrations,
)

logger = app_logger.getChild("main")

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorKind.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorKind.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


async def assessment_error_handler(request: Request, exc: AssessmentError) -> JSONResponse:
    content = {"error": exc.kind.value, "reason": exc.reason.value, "message": exc.message}
    errors = getattr(exc, "errors", None)
    if errors:
        content["details"] = errors
    return JSONResponse(status_code=STATUS_BY_KIND[exc.kind], content=content)


async def database_error_handler(request: Request, exc: DatabaseError) -> JSONResponse:
    logger.error(f"Database error on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "database", "message": "Internal storage error"},
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report request validation errors in the same shape as business validation failures."""
    error_details = []
    for error in exc.errors():
        error_details.append({
            "location": list(error.get("loc", [])),
            "message": error.get("msg", "Unknown validation error"),
            "type": error.get("type", "")
        })

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": ErrorKind.VALIDATION.value,
            "reason": FailureReason.INVALID_INPUT.value,
            "message": "Validation error",
            "details": error_details
        }
    )


def create_app(
    config: Optional[AppConfig] = None,
    courses: Optional[CourseDirectory] = None,
    progress: Optional[ProgressTracker] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Application config, loaded from file and environment when omitted
        courses: Course lookups; an empty in-memory directory when omitted
        progress: Progress lookups; an empty in-memory tracker when omitted

    Returns:
        Configured FastAPI application
    """
    config = config or get_config()
    courses = courses or InMemoryCourseDirectory()
    progress = progress or InMemoryProgressTracker()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logger(
            level=config.logging.level,
            use_json=config.logging.use_json,
            log_file=config.logging.file_path,
        )
        try:
            await initialize_database(config.database.url, config.database.echo, config.database.pool_size)
            if config.database.run_migrations:
                await run_migrations(config.database.url)
            else:
                await create_schema()
        except Exception as e:
            logger.error(f"Failed to initialize application: {e}", exc_info=True)
            raise

        app.state.services = build_services(get_session_factory(), courses, progress, config=config.assessment)
        logger.info(f"{config.app_name} started ({config.env})")
        yield

        app.state.services = None
        await close_database()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title=config.app_name,
        description="Quiz and exam assessment API",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(assessments_router, prefix=config.api.prefix)
    app.add_exception_handler(AssessmentError, assessment_error_handler)
    app.add_exception_handler(DatabaseError, database_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    @app.get("/")
    async def root():
        return {"message": f"Welcome to {config.app_name}", "version": __version__}

    logger.debug(f"Application created with {len(app.routes)} routes")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_config()
    logger.info(f"Starting server on {settings.api.host}:{settings.api.port} (reload: {settings.api.reload})")
    uvicorn.run(
        "learnquest.main:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=settings.api.reload,
        log_level=settings.logging.level.lower(),
    )
