import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.types import Message, Receive, Scope, Send

from svg_service import __version__
from svg_service.conversion import (
    ConversionError,
    ConversionJob,
    ConversionPipeline,
    LocalStorage,
    NoFileUploaded,
    SubprocessToolRunner,
)
from svg_service.settings import Settings

logger = logging.getLogger(__name__)


class CleanupFileResponse(FileResponse):
    """Streams a converted SVG, then removes the job's output and input files.

    Cleanup runs whether or not the transfer succeeds. A failed transfer is
    logged only: the conversion itself already succeeded.
    """

    def __init__(self, job: ConversionJob, pipeline: ConversionPipeline) -> None:
        super().__init__(job.output_path, media_type="image/svg+xml", filename=job.download_name)
        self._job = job
        self._pipeline = pipeline

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        completed = False

        async def tracking_send(message: Message) -> None:
            nonlocal completed
            await send(message)
            if message["type"] == "http.response.pathsend" or (
                message["type"] == "http.response.body" and not message.get("more_body", False)
            ):
                completed = True

        try:
            await super().__call__(scope, receive, tracking_send)
            # A client disconnect cancels the stream without raising
            if completed:
                logger.info("Delivered %s", self._job.download_name)
            else:
                logger.warning("Download error for %s: client disconnected", self._job.download_name)
        except Exception:
            logger.warning("Download error for %s", self._job.download_name, exc_info=True)
        finally:
            self._pipeline.release(self._job)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    storage = LocalStorage(settings.upload_dir, settings.converted_dir)
    pipeline = ConversionPipeline(
        storage=storage,
        runner=SubprocessToolRunner(timeout_sec=settings.tool_timeout_sec),
        strategies=settings.strategies(),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        storage.ensure_dirs()
        logger.info(
            "Uploads in %s, converted files in %s, accepting %s",
            storage.upload_dir,
            storage.converted_dir,
            ", ".join(pipeline.supported_extensions),
        )
        yield

    app = FastAPI(
        title="SVG Conversion Service",
        version=__version__,
        description="Converts uploaded Adobe Illustrator and EPS files into SVG.",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.storage = storage
    app.state.pipeline = pipeline

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(ConversionError)
    def _conversion_error(request: Request, exc: ConversionError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(RequestValidationError)
    def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        # The only request input is the aiFile part; anything malformed means no usable file
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.errors())
        return _conversion_error(request, NoFileUploaded())

    @app.get("/health")
    def health() -> dict[str, str]:
        """Basic health check endpoint."""
        return {"status": "ok"}

    @app.post("/convert")
    async def convert(ai_file: UploadFile | None = File(None, alias="aiFile")) -> CleanupFileResponse:
        """Convert one uploaded .ai or .eps file to SVG.

        Accepts multipart/form-data with a single part named "aiFile" and
        returns the SVG as an attachment named after the stored upload.
        """
        if ai_file is None:
            raise NoFileUploaded()
        upload = await storage.save_upload(
            ai_file.filename or "upload",
            ai_file.read,
            max_bytes=settings.max_upload_bytes,
        )
        job = await pipeline.convert(upload)
        return CleanupFileResponse(job, pipeline)

    # Mounted last so API routes take precedence over the front-end files
    if settings.static_dir is not None and settings.static_dir.is_dir():
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")

    return app


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(format="[%(asctime)s] - %(name)s - %(message)s", level=level)


_settings = Settings.from_env()
app = create_app(_settings)


def run() -> None:
    """Run the ASGI server using uvicorn.

    Exposes the app at HOST:PORT (default 0.0.0.0:3000). Set RELOAD=true for development.
    """
    import uvicorn

    configure_logging(_settings.log_level)
    uvicorn.run("svg_service.webapi:app", host=_settings.host, port=_settings.port, reload=_settings.reload)


if __name__ == "__main__":
    run()
