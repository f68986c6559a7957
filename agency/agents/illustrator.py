"""Illustrator — the image-generation capability behind 'generate_image'.

Failures are never raised: the caller gets None and narrates the miss.
"""

import asyncio
import base64
import os
import sys

from google import genai
from google.genai import types

from agency.config import get_config

_client = None


def _get_client():
    """Lazily build the Google GenAI client (the key comes from .env / the environment)."""
    global _client
    if _client is None:
        api_key = os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY")
        if not api_key:
            raise ValueError("GEMINI_API_KEY or GOOGLE_API_KEY must be set")
        _client = genai.Client(api_key=api_key)
    return _client


def _to_data_uri(data, mime_type: str | None) -> str:
    if isinstance(data, str):
        encoded = data  # Already base64.
    else:
        encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type or 'image/png'};base64,{encoded}"


async def generate_image(prompt: str) -> str | None:
    """Render a prompt to an image and return it as a data URI, or None on failure."""
    config = get_config()
    try:
        client = _get_client()
        response = await asyncio.wait_for(
            client.aio.models.generate_content(
                model=config.get("image_model", "gemini-2.5-flash-image"),
                contents=[prompt],
                config=types.GenerateContentConfig(response_modalities=["IMAGE"]),
            ),
            timeout=config.get("image_timeout_seconds", 60),
        )
    except Exception as exc:
        print(f"[Agency] Image generation failed: {exc!r}", file=sys.stderr)
        return None

    candidates = response.candidates or []
    if candidates and candidates[0].content and candidates[0].content.parts:
        for part in candidates[0].content.parts:
            if part.inline_data is not None and part.inline_data.data:
                return _to_data_uri(part.inline_data.data, part.inline_data.mime_type)

    print("[Agency] Image generation returned no image parts.", file=sys.stderr)
    return None
