"""
Lazy-initialized Gemini client.

Gemini is reached through its OpenAI-compatible endpoint, so the regular
OpenAI SDK does the transport. The client is created on first use so that
importing the app never fails when GEMINI_API_KEY is unset.
"""

import os
from typing import Optional
import httpx
from openai import OpenAI

_client: Optional[OpenAI] = None

GEMINI_BASE_URL = os.getenv(
    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta/openai/"
)
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")

# 60s total request, 10s connect
DEFAULT_TIMEOUT = httpx.Timeout(60.0, connect=10.0)


def get_gemini_client() -> OpenAI:
    """
    Get the shared client, creating it on first call.

    Raises:
        ValueError: If GEMINI_API_KEY is not set
    """
    global _client

    if _client is None:
        api_key = os.getenv("GEMINI_API_KEY")
        if not api_key:
            raise ValueError(
                "GEMINI_API_KEY environment variable is not set. "
                "Please set it before using AI features."
            )
        _client = OpenAI(api_key=api_key, base_url=GEMINI_BASE_URL, timeout=DEFAULT_TIMEOUT)

    return _client


def generate_text(prompt: str, model: Optional[str] = None, temperature: float = 0.4) -> str:
    """Send a single-turn prompt and return the text of the first choice."""
    response = get_gemini_client().chat.completions.create(
        model=model or GEMINI_MODEL,
        messages=[{"role": "user", "content": prompt}],
        temperature=temperature,
    )
    return response.choices[0].message.content or ""


def reset_client() -> None:
    """Drop the cached client (tests, key rotation)."""
    global _client
    _client = None
