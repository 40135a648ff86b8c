"""Google Gemini adapters for transcription and lesson analysis."""

from .analysis import GeminiAnalysisAdapter
from .transcription import GeminiTranscriptionAdapter

__all__ = ["GeminiAnalysisAdapter", "GeminiTranscriptionAdapter"]
