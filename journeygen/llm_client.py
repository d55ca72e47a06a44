import logging
from typing import Optional

import httpx

from journeygen.errors import EmptyGeneration, GenerationUnavailable
from journeygen.settings.config import settings

logger = logging.getLogger(__name__)


class GenerationClient:
    """
    Thin async wrapper around an OpenAI-compatible /chat/completions endpoint.

    Non-streaming, one request per call, no retry. Returns the raw text of the
    first choice.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.base_url = (base_url or settings.OPENAI_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.GENERATION_TIMEOUT_SECONDS
        self._transport = transport

    async def complete(
        self,
        system: str,
        user: str,
        *,
        model: str,
        max_tokens: int,
        temperature: Optional[float] = None,
    ) -> str:
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "max_tokens": max_tokens,
        }
        # Leave sampling to the service default unless explicitly asked.
        if temperature is not None:
            payload["temperature"] = temperature

        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        url = f"{self.base_url}/chat/completions"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.post(url, json=payload, headers=headers)
                r.raise_for_status()
                data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            raise GenerationUnavailable(f"Generation request failed: {e}") from e

        out = _first_choice_text(data)
        if not out or not out.strip():
            raise EmptyGeneration("Generation service returned no content.", detail=data)
        return out


def _first_choice_text(data) -> str:
    try:
        content = (data or {}).get("choices", [])[0].get("message", {}).get("content")
    except (AttributeError, IndexError, TypeError):
        return ""
    # structured content parts are not a journal reply
    return content if isinstance(content, str) else ""


async def get_generation_client() -> GenerationClient:
    """FastAPI dependency; overridden in tests."""
    return GenerationClient()


__all__ = ["GenerationClient", "get_generation_client"]
