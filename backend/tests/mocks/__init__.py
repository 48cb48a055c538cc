"""
Mock infrastructure for EduVox testing.
Provides deterministic mocks for Gemini and other external services.
"""

from .gemini_mocks import (
    MOCK_AI_ANALYSIS,
    MOCK_AI_PATHWAY,
    FakeTextGenerator,
    failing_text_generator,
    mock_ai_analysis_text,
    mock_ai_pathway_text,
    mock_chat_completion,
)

__all__ = [
    "MOCK_AI_ANALYSIS",
    "MOCK_AI_PATHWAY",
    "FakeTextGenerator",
    "failing_text_generator",
    "mock_ai_analysis_text",
    "mock_ai_pathway_text",
    "mock_chat_completion",
]
