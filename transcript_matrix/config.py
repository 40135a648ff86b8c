import os
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Type, TypeVar
from enum import Enum

from dotenv import load_dotenv

from transcript_matrix.domain.errors import PreconditionError
from transcript_matrix.domain.models import AnalysisProvider, TranscriptionProvider

logger = logging.getLogger(__name__)

load_dotenv()

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8001
DEFAULT_OUTPUT_DIR = "output"
DEFAULT_VIDEO_DIR = "video"
DEFAULT_MAX_VIDEO_SIZE_MB = 500
DEFAULT_AWS_REGION = "us-east-1"
DEFAULT_OPENAI_MODEL = "gpt-4o-2024-11-20"
DEFAULT_WHISPER_MODEL = "whisper-1"
DEFAULT_ANTHROPIC_MODEL = "claude-3-5-sonnet-20240620"
DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"
DEFAULT_GEMINI_TRANSCRIBE_MODEL = "gemini-1.5-flash"

# Credentials each provider needs before a run may start.
TRANSCRIPTION_CREDENTIALS: Dict[TranscriptionProvider, tuple] = {
    TranscriptionProvider.OPENAI: ("OPENAI_API_KEY",),
    TranscriptionProvider.AMAZON: ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_S3_BUCKET"),
    TranscriptionProvider.ASSEMBLYAI: ("ASSEMBLYAI_API_KEY",),
    TranscriptionProvider.GEMINI: ("GOOGLE_API_KEY",),
}

ANALYSIS_CREDENTIALS: Dict[AnalysisProvider, tuple] = {
    AnalysisProvider.OPENAI: ("OPENAI_API_KEY",),
    AnalysisProvider.ANTHROPIC: ("ANTHROPIC_API_KEY",),
    AnalysisProvider.GEMINI: ("GOOGLE_API_KEY",),
}

E = TypeVar("E", bound=Enum)


def _check_exhaustive(table: Mapping, enum_cls: Type[Enum], name: str) -> None:
    missing = [member.value for member in enum_cls if member not in table]
    if missing:
        raise RuntimeError(f"{name} has no entry for: {', '.join(missing)}")


def _env_bool(key: str, default: bool) -> bool:
    raw = os.environ.get(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_number(key: str, default, cast: Callable):
    raw = os.environ.get(key, "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        raise PreconditionError(f"{key} must be a number, got {raw!r}", missing=[key])


def parse_providers(raw: str, enum_cls: Type[E], key: str) -> List[E]:
    """Parse a comma-separated provider list, keeping order and dropping repeats."""
    tags = [t.strip().lower() for t in raw.split(",") if t.strip()]
    known = {member.value: member for member in enum_cls}
    unknown = [t for t in tags if t not in known]
    if unknown:
        raise PreconditionError(
            f"Unknown provider(s) in {key}: {', '.join(unknown)}. "
            f"Valid options: {', '.join(known)}"
        )
    if not tags:
        raise PreconditionError(f"{key} must name at least one provider")
    return list(dict.fromkeys(known[t] for t in tags))


def credential(name: str) -> str:
    return os.environ.get(name, "").strip()


class Config:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            instance = super(Config, cls).__new__(cls)
            instance._initialize()
            cls._instance = instance
        return cls._instance

    @classmethod
    def reload(cls) -> "Config":
        """Drop the cached instance and re-read the environment."""
        cls._instance = None
        return cls()

    def _initialize(self):
        self.host = os.environ.get("HOST", DEFAULT_HOST)
        self.port = _env_number("PORT", DEFAULT_PORT, int)
        self.debug = os.environ.get("DEBUG", "0") == "1"
        self.output_dir = os.environ.get("OUTPUT_DIR", DEFAULT_OUTPUT_DIR)
        self.video_dir = os.environ.get("VIDEO_DIR", DEFAULT_VIDEO_DIR)
        self.max_video_size_mb = _env_number("MAX_VIDEO_SIZE_MB", DEFAULT_MAX_VIDEO_SIZE_MB, float)
        self.include_images = _env_bool("INCLUDE_IMAGES", False)
        self.only_transcribe = _env_bool("ONLY_TRANSCRIBE", False)

        self.retry_attempts = _env_number("RETRY_ATTEMPTS", 3, int)
        self.retry_delay = _env_number("RETRY_DELAY", 1.0, float)
        self.retry_permanent = _env_bool("RETRY_PERMANENT", False)
        self.poll_interval = _env_number("POLL_INTERVAL", 5.0, float)
        self.max_polls = _env_number("MAX_POLLS", 360, int)
        self.words_per_segment = _env_number("WORDS_PER_SEGMENT", 10, int)
        self.max_workers = _env_number("MAX_WORKERS", 8, int)
        self.request_timeout = _env_number("REQUEST_TIMEOUT", 600.0, float)

        self.openai_model = os.environ.get("OPENAI_MODEL", DEFAULT_OPENAI_MODEL)
        self.whisper_model = os.environ.get("WHISPER_MODEL", DEFAULT_WHISPER_MODEL)
        self.anthropic_model = os.environ.get("ANTHROPIC_MODEL", DEFAULT_ANTHROPIC_MODEL)
        self.gemini_model = os.environ.get("GEMINI_MODEL", DEFAULT_GEMINI_MODEL)
        self.gemini_transcribe_model = os.environ.get("GEMINI_TRANSCRIBE_MODEL", DEFAULT_GEMINI_TRANSCRIBE_MODEL)
        self.aws_region = os.environ.get("AWS_REGION", DEFAULT_AWS_REGION)

        # Provider lists are validated on access so a typo is reported as a precondition.
        self.transcription_providers_raw = os.environ.get(
            "TRANSCRIPTION_PROVIDERS", ",".join(p.value for p in TranscriptionProvider)
        )
        self.analysis_providers_raw = os.environ.get(
            "ANALYSIS_PROVIDERS", ",".join(p.value for p in AnalysisProvider)
        )

    @property
    def transcription_providers(self) -> List[TranscriptionProvider]:
        return parse_providers(self.transcription_providers_raw, TranscriptionProvider, "TRANSCRIPTION_PROVIDERS")

    @property
    def analysis_providers(self) -> List[AnalysisProvider]:
        return parse_providers(self.analysis_providers_raw, AnalysisProvider, "ANALYSIS_PROVIDERS")

    def required_env_vars(self, only_transcribe: Optional[bool] = None) -> List[str]:
        """Every variable the enabled providers need, in first-seen order."""
        only_transcribe = self.only_transcribe if only_transcribe is None else only_transcribe
        names: List[str] = []
        for provider in self.transcription_providers:
            names.extend(TRANSCRIPTION_CREDENTIALS[provider])
        if not only_transcribe:
            for provider in self.analysis_providers:
                names.extend(ANALYSIS_CREDENTIALS[provider])
        return list(dict.fromkeys(names))

    def missing_credentials(self, only_transcribe: Optional[bool] = None) -> List[str]:
        return [name for name in self.required_env_vars(only_transcribe) if not credential(name)]

    def check_credentials(self, only_transcribe: Optional[bool] = None) -> None:
        missing = self.missing_credentials(only_transcribe)
        if missing:
            raise PreconditionError(
                f"Missing required environment variables: {', '.join(missing)}",
                missing=missing,
            )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "output_dir": self.output_dir,
            "video_dir": self.video_dir,
            "max_video_size_mb": self.max_video_size_mb,
            "include_images": self.include_images,
            "only_transcribe": self.only_transcribe,
            "transcription_providers": self.transcription_providers_raw,
            "analysis_providers": self.analysis_providers_raw,
            "retry_attempts": self.retry_attempts,
            "retry_delay": self.retry_delay,
            "retry_permanent": self.retry_permanent,
            "poll_interval": self.poll_interval,
            "max_polls": self.max_polls,
            "words_per_segment": self.words_per_segment,
            "max_workers": self.max_workers,
            "request_timeout": self.request_timeout,
            "aws_region": self.aws_region,
            "models": {
                "openai": self.openai_model,
                "whisper": self.whisper_model,
                "anthropic": self.anthropic_model,
                "gemini": self.gemini_model,
                "gemini_transcribe": self.gemini_transcribe_model,
            },
        }


def get_config() -> Config:
    return Config()


def create_media_adapter():
    """Create the media extraction adapter (always FFmpeg)."""
    from transcript_matrix.adapters.ffmpeg.media import FFmpegMediaAdapter
    return FFmpegMediaAdapter()


def create_frame_reader():
    from transcript_matrix.adapters.local.file_frame_reader import FileFrameReader
    return FileFrameReader()


def create_progress_adapter():
    from transcript_matrix.adapters.local.log_progress import LogProgressAdapter
    return LogProgressAdapter()


def create_retry_policy(cfg: Config):
    from transcript_matrix.retry import RetryPolicy
    return RetryPolicy(
        max_attempts=cfg.retry_attempts,
        base_delay=cfg.retry_delay,
        retry_permanent=cfg.retry_permanent,
    )


def _openai_transcriber(cfg: Config, media):
    from transcript_matrix.adapters.openai import WhisperTranscriptionAdapter
    return WhisperTranscriptionAdapter(
        api_key=credential("OPENAI_API_KEY"),
        model=cfg.whisper_model,
        timeout=cfg.request_timeout,
    )


def _amazon_transcriber(cfg: Config, media):
    from transcript_matrix.adapters.aws import AmazonTranscribeAdapter
    return AmazonTranscribeAdapter(
        bucket=credential("AWS_S3_BUCKET"),
        region=cfg.aws_region,
        poll_interval=cfg.poll_interval,
        max_polls=cfg.max_polls,
        max_words=cfg.words_per_segment,
    )


def _assemblyai_transcriber(cfg: Config, media):
    from transcript_matrix.adapters.assemblyai import AssemblyAITranscriptionAdapter
    return AssemblyAITranscriptionAdapter(
        api_key=credential("ASSEMBLYAI_API_KEY"),
        poll_interval=cfg.poll_interval,
        max_polls=cfg.max_polls,
        max_words=cfg.words_per_segment,
        timeout=cfg.request_timeout,
    )


def _gemini_transcriber(cfg: Config, media):
    from transcript_matrix.adapters.gemini import GeminiTranscriptionAdapter
    return GeminiTranscriptionAdapter(
        api_key=credential("GOOGLE_API_KEY"),
        model=cfg.gemini_transcribe_model,
        duration_probe=media.probe_duration if media is not None else None,
        poll_interval=cfg.poll_interval,
        max_polls=cfg.max_polls,
    )


def _openai_analyzer(cfg: Config, frame_reader):
    from transcript_matrix.adapters.openai import OpenAIAnalysisAdapter
    return OpenAIAnalysisAdapter(
        frame_reader,
        api_key=credential("OPENAI_API_KEY"),
        model=cfg.openai_model,
        timeout=cfg.request_timeout,
    )


def _anthropic_analyzer(cfg: Config, frame_reader):
    from transcript_matrix.adapters.anthropic import AnthropicAnalysisAdapter
    return AnthropicAnalysisAdapter(
        frame_reader,
        api_key=credential("ANTHROPIC_API_KEY"),
        model=cfg.anthropic_model,
        timeout=cfg.request_timeout,
    )


def _gemini_analyzer(cfg: Config, frame_reader):
    from transcript_matrix.adapters.gemini import GeminiAnalysisAdapter
    return GeminiAnalysisAdapter(frame_reader, api_key=credential("GOOGLE_API_KEY"), model=cfg.gemini_model)


TRANSCRIBER_FACTORIES: Dict[TranscriptionProvider, Callable] = {
    TranscriptionProvider.OPENAI: _openai_transcriber,
    TranscriptionProvider.AMAZON: _amazon_transcriber,
    TranscriptionProvider.ASSEMBLYAI: _assemblyai_transcriber,
    TranscriptionProvider.GEMINI: _gemini_transcriber,
}

ANALYZER_FACTORIES: Dict[AnalysisProvider, Callable] = {
    AnalysisProvider.OPENAI: _openai_analyzer,
    AnalysisProvider.ANTHROPIC: _anthropic_analyzer,
    AnalysisProvider.GEMINI: _gemini_analyzer,
}

_check_exhaustive(TRANSCRIPTION_CREDENTIALS, TranscriptionProvider, "TRANSCRIPTION_CREDENTIALS")
_check_exhaustive(ANALYSIS_CREDENTIALS, AnalysisProvider, "ANALYSIS_CREDENTIALS")
_check_exhaustive(TRANSCRIBER_FACTORIES, TranscriptionProvider, "TRANSCRIBER_FACTORIES")
_check_exhaustive(ANALYZER_FACTORIES, AnalysisProvider, "ANALYZER_FACTORIES")


def create_transcription_adapters(
    cfg: Config,
    providers: Optional[Sequence[TranscriptionProvider]] = None,
    media=None,
):
    """Create one transcription adapter per enabled provider, in configured order.

    Uses lazy imports so SDKs of disabled providers are never loaded.
    """
    providers = cfg.transcription_providers if providers is None else providers
    adapters = {p: TRANSCRIBER_FACTORIES[p](cfg, media) for p in dict.fromkeys(providers)}
    logger.info(f"Transcription adapters: {', '.join(type(a).__name__ for a in adapters.values())}")
    return adapters


def create_analysis_adapters(
    cfg: Config,
    providers: Optional[Iterable[AnalysisProvider]] = None,
    frame_reader=None,
):
    """Create one analysis adapter per enabled provider, in configured order."""
    providers = cfg.analysis_providers if providers is None else providers
    frame_reader = frame_reader or create_frame_reader()
    adapters = {p: ANALYZER_FACTORIES[p](cfg, frame_reader) for p in dict.fromkeys(providers)}
    logger.info(f"Analysis adapters: {', '.join(type(a).__name__ for a in adapters.values())}")
    return adapters


def create_run_use_case(cfg: Config, only_transcribe: Optional[bool] = None):
    """Wire the run coordinator from configuration. Analysis adapters are skipped in transcription-only mode."""
    from transcript_matrix.use_cases.run_matrix import RunMatrixUseCase

    only_transcribe = cfg.only_transcribe if only_transcribe is None else only_transcribe
    media = create_media_adapter()
    transcribers = create_transcription_adapters(cfg, media=media)
    analyzers = {} if only_transcribe else create_analysis_adapters(cfg)
    return RunMatrixUseCase(
        media=media,
        transcribers=transcribers,
        analyzers=analyzers,
        progress=create_progress_adapter(),
        retry_policy=create_retry_policy(cfg),
        max_workers=cfg.max_workers,
    )
