# completion.py: text-completion collaborator (OpenAI-compatible chat endpoint)
from __future__ import annotations

import logging
import os
from typing import Optional, Protocol

import httpx

from .errors import CompletionError

log = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"


class Completer(Protocol):
    def complete(self, prompt: str, system: Optional[str] = None, json_mode: bool = False) -> str:
        ...


class CompletionClient:
    def __init__(self,
                 api_key: str,
                 base_url: str = DEFAULT_BASE_URL,
                 model: str = DEFAULT_MODEL,
                 timeout: float = 60.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.model = model
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def complete(self, prompt: str, system: Optional[str] = None, json_mode: bool = False) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        payload = {"model": self.model, "messages": messages}
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        try:
            r = self._client.post("/chat/completions", json=payload)
            r.raise_for_status()
            data = r.json()
            content = data["choices"][0]["message"]["content"]
        except httpx.HTTPError as e:
            raise CompletionError(f"completion request failed: {e}") from e
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise CompletionError(f"unexpected completion response: {e}") from e

        return (content or "").strip()


def completion_client_from_env() -> Optional[CompletionClient]:
    """None when no API key is configured; enrichment then uses local fallbacks."""
    api_key = (os.getenv("COMPLETION_API_KEY") or os.getenv("OPENAI_API_KEY") or "").strip()
    if not api_key:
        log.info("[completion] no API key configured, enrichment disabled")
        return None
    return CompletionClient(
        api_key=api_key,
        base_url=os.getenv("COMPLETION_BASE_URL", DEFAULT_BASE_URL),
        model=os.getenv("COMPLETION_MODEL", DEFAULT_MODEL),
    )
