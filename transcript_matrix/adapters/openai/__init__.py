"""OpenAI adapters: hosted Whisper transcription and chat-completion analysis."""

from .analysis import OpenAIAnalysisAdapter
from .transcription import WhisperTranscriptionAdapter

__all__ = ["OpenAIAnalysisAdapter", "WhisperTranscriptionAdapter"]
