from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, model_validator


class SegmentDTO(BaseModel):
    """A transcript segment as written to disk and returned by the API"""
    start: float
    end: float
    text: str

    @model_validator(mode="after")
    def _end_after_start(self):
        if self.end < self.start:
            raise ValueError(f"end ({self.end}) is before start ({self.start})")
        return self


class TranscriptionIndex(BaseModel):
    """Combined index of every transcript that was written for a video."""
    created_at: datetime
    video: str
    providers: List[str]
    transcriptions: Dict[str, List[SegmentDTO]]


class FailureDTO(BaseModel):
    stage: str
    provider: str
    kind: str
    message: str


class AnalysisPairDTO(BaseModel):
    analysis_provider: str
    transcription_provider: str


class RunSummary(BaseModel):
    """Response format for a single-video run"""
    video: str
    state: str
    output_dir: str
    transcribed_by: List[str] = []
    analyses: List[AnalysisPairDTO] = []
    failures: List[FailureDTO] = []
    artifacts: List[str] = []


class RunRequestBody(BaseModel):
    video_path: str
    include_images: bool = False
    only_transcribe: bool = False
    output_dir: Optional[str] = None


class ProviderList(BaseModel):
    object: str = "list"
    transcription: List[str]
    analysis: List[str]
