"""Run several transcription providers and several analysis models over the same videos."""

__version__ = "1.0.0"
