from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles

from storybook_images.errors import ImagePipelineError
from storybook_images.gateway import __version__
from storybook_images.gateway.auth.dependencies import set_config
from storybook_images.gateway.config import GatewayConfig
from storybook_images.gateway.db import init_db
from storybook_images.gateway.log_config import logger
from storybook_images.gateway.routes import health
from storybook_images.gateway.routes.images import router as images_router
from storybook_images.gateway.routes.images.service import (
    ImageGenerationService,
    OrchestratorFactory,
    make_orchestrator_factory,
)
from storybook_images.gateway.storage import (
    AzureBlobStore,
    BlobStore,
    LocalBlobStore,
    StoryImageRepository,
    StoryImageStorage,
)

LOCAL_BLOBS_MOUNT = "/blobs"


def build_blob_store(config: GatewayConfig) -> BlobStore:
    """Blob backend selected by ``storage_backend``."""
    if config.storage_backend == "azure":
        return AzureBlobStore(config.storage_connection_string or "", config.storage_public_base_url)
    return LocalBlobStore(config.storage_local_dir, config.storage_public_base_url or LOCAL_BLOBS_MOUNT)


def _format_validation_error(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages) or "Invalid request"


def create_app(
    config: GatewayConfig,
    *,
    blob_store: BlobStore | None = None,
    orchestrator_factory: OrchestratorFactory | None = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        config: Gateway configuration
        blob_store: Storage backend; built from ``config`` when omitted
        orchestrator_factory: Provider chain builder; real adapters when omitted

    Returns:
        Configured FastAPI application

    """
    init_db(config.database_url, auto_migrate=config.auto_migrate)
    set_config(config)

    store = blob_store or build_blob_store(config)
    storage = StoryImageStorage(store, config.image_buckets)

    app = FastAPI(
        title="storybook-image-gateway",
        description="Illustration generation with provider fallback and print normalization",
        version=__version__,
        swagger_ui_parameters={"persistAuthorization": True},
    )
    app.state.image_service = ImageGenerationService(
        orchestrator_factory=orchestrator_factory or make_orchestrator_factory(config),
        storage=storage,
        repository_factory=StoryImageRepository,
        config=config,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ImagePipelineError)
    async def handle_pipeline_error(request: Request, exc: ImagePipelineError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s (provider=%s)", request.method, request.url.path, exc.message, exc.provider)
        else:
            logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        message = _format_validation_error(exc)
        logger.info("%s %s invalid request: %s", request.method, request.url.path, message)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": message},
        )

    app.include_router(health.router)
    app.include_router(images_router)

    if isinstance(store, LocalBlobStore) and not config.storage_public_base_url:
        Path(config.storage_local_dir).mkdir(parents=True, exist_ok=True)
        app.mount(LOCAL_BLOBS_MOUNT, StaticFiles(directory=config.storage_local_dir), name="blobs")

    @app.get("/", include_in_schema=False)
    async def redirect_to_docs() -> RedirectResponse:
        """Redirect root requests to interactive API docs."""
        return RedirectResponse(url="/docs")

    return app
