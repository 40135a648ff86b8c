"""AssemblyAI REST adapter."""

from .transcription import AssemblyAITranscriptionAdapter

__all__ = ["AssemblyAITranscriptionAdapter"]
