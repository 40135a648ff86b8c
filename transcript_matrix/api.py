"""FastAPI surface: run one video per request and report the outcome."""

import logging
from pathlib import Path
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from transcript_matrix import __version__
from transcript_matrix.auth import ApiKeyMiddleware, load_api_keys
from transcript_matrix.config import Config, create_run_use_case, get_config
from transcript_matrix.domain.errors import (
    AllProvidersFailedError, MediaExtractionError, PreconditionError,
)
from transcript_matrix.inputs import is_supported_video
from transcript_matrix.mappers import failure_to_dto, report_to_summary
from transcript_matrix.models import ProviderList, RunRequestBody, RunSummary
from transcript_matrix.use_cases.run_matrix import RunMatrixUseCase, RunRequest

logger = logging.getLogger(__name__)

UseCaseFactory = Callable[[bool], RunMatrixUseCase]


def create_app(
    use_case_factory: Optional[UseCaseFactory] = None,
    config: Optional[Config] = None,
) -> FastAPI:
    """Build the app. use_case_factory(only_transcribe) wires the coordinator per request."""
    cfg = config or get_config()

    def default_factory(only_transcribe: bool) -> RunMatrixUseCase:
        cfg.check_credentials(only_transcribe=only_transcribe)
        return create_run_use_case(cfg, only_transcribe=only_transcribe)

    factory = use_case_factory or default_factory

    app = FastAPI(title="transcript-matrix", version=__version__)
    app.add_middleware(ApiKeyMiddleware, keys=load_api_keys())

    @app.exception_handler(PreconditionError)
    async def precondition_handler(request: Request, exc: PreconditionError):
        return JSONResponse(status_code=400, content={"detail": str(exc), "missing": exc.missing})

    @app.exception_handler(MediaExtractionError)
    async def media_handler(request: Request, exc: MediaExtractionError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(AllProvidersFailedError)
    async def all_failed_handler(request: Request, exc: AllProvidersFailedError):
        return JSONResponse(
            status_code=502,
            content={
                "detail": str(exc),
                "failures": [failure_to_dto(f).model_dump() for f in exc.failures],
            },
        )

    @app.get("/health")
    def health():
        return {"status": "ok", "version": __version__}

    @app.get("/v1/providers", response_model=ProviderList)
    def providers():
        return ProviderList(
            transcription=[p.value for p in cfg.transcription_providers],
            analysis=[p.value for p in cfg.analysis_providers],
        )

    # Sync handler: FastAPI runs it in a worker thread, the stages fan out from there.
    @app.post("/v1/runs", response_model=RunSummary)
    def create_run(body: RunRequestBody):
        video = Path(body.video_path)
        if not video.is_file():
            raise PreconditionError(f"Video not found: {video}")
        if not is_supported_video(video):
            raise PreconditionError(f"Unsupported video format: {video.suffix}")

        use_case = factory(body.only_transcribe)
        report = use_case.execute(
            RunRequest(
                video_path=video,
                output_root=Path(body.output_dir or cfg.output_dir),
                include_images=body.include_images,
                only_transcribe=body.only_transcribe,
            )
        )
        return report_to_summary(report)

    return app
