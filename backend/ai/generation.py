"""
Generation backends for the AI designer.

TextGenerator wraps the Anthropic Messages API; ImageGenerator wraps the
OpenAI Images API and downloads the transient result with httpx.
Both raise UpstreamFailure for any backend problem, including a missing key,
so the chat turn can degrade gracefully.
"""

import logging
import os
from typing import Optional

import httpx
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from backend.errors import UpstreamFailure

logger = logging.getLogger(__name__)

DEFAULT_CHAT_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_IMAGE_MODEL = "dall-e-3"
IMAGE_SIZE = "1024x1024"

# Timeout for downloading a generated image (seconds)
_DOWNLOAD_TIMEOUT = 30.0


class TextGenerator:
    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, max_tokens: int = 1000):
        self._api_key = api_key
        self.model = model or os.getenv("DESIGN_CHAT_MODEL", DEFAULT_CHAT_MODEL)
        self.max_tokens = max_tokens
        self._client: Optional[AsyncAnthropic] = None

    def _get_client(self) -> AsyncAnthropic:
        if self._client is None:
            api_key = self._api_key or os.getenv("ANTHROPIC_API_KEY")
            if not api_key:
                raise UpstreamFailure("ANTHROPIC_API_KEY not configured")
            self._client = AsyncAnthropic(api_key=api_key)
        return self._client

    async def generate(self, system: str, messages: list[dict]) -> str:
        """Return the model's reply text. May be empty if the model produced no text."""
        client = self._get_client()
        try:
            response = await client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system,
                messages=messages,
                temperature=0.7,
            )
        except Exception as e:
            raise UpstreamFailure(f"Text generation failed: {e}") from e

        return "".join(block.text for block in response.content if getattr(block, "type", None) == "text")


class ImageGenerator:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self.model = model or os.getenv("DESIGN_IMAGE_MODEL", DEFAULT_IMAGE_MODEL)
        self._client: Optional[AsyncOpenAI] = None
        self._transport = transport

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            api_key = self._api_key or os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise UpstreamFailure("OPENAI_API_KEY not configured")
            self._client = AsyncOpenAI(api_key=api_key)
        return self._client

    async def generate(self, prompt: str) -> str:
        """Generate one image and return its transient URL."""
        client = self._get_client()
        try:
            response = await client.images.generate(
                model=self.model,
                prompt=prompt,
                n=1,
                size=IMAGE_SIZE,
            )
        except Exception as e:
            raise UpstreamFailure(f"Image generation failed: {e}") from e

        url = response.data[0].url if response.data else None
        if not url:
            raise UpstreamFailure("Image generation returned no URL")
        return url

    async def fetch(self, url: str) -> bytes:
        try:
            async with httpx.AsyncClient(
                timeout=_DOWNLOAD_TIMEOUT, follow_redirects=True, transport=self._transport
            ) as client:
                resp = await client.get(url)
                resp.raise_for_status()
                return resp.content
        except httpx.HTTPError as e:
            raise UpstreamFailure(f"Generated image download failed: {e}") from e
