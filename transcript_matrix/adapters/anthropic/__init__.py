"""Anthropic Claude adapter for lesson analysis."""

from .analysis import AnthropicAnalysisAdapter

__all__ = ["AnthropicAnalysisAdapter"]
