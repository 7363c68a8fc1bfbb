#!/usr/bin/env python3
"""Ollama HTTP client for Local SubTrans.

Thin wrapper over httpx for the two endpoints the translator needs:
``/api/generate`` for completions and ``/api/show`` for model availability.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from .errors import TranslationError


DEFAULT_TIMEOUT = 300.0


class OllamaClient:
    """Client for a local Ollama server.

    Args:
        endpoint: Base URL, e.g. ``http://localhost:11434``
        model: Model tag used for every request
        timeout: Request timeout in seconds
        client: Optional preconfigured httpx.Client (tests pass one with a MockTransport)
    """

    def __init__(
        self,
        endpoint: str,
        model: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.Client] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.model = model
        self.client = client or httpx.Client(timeout=timeout)

    def _payload(self, prompt: str, json_format: bool) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"model": self.model, "prompt": prompt, "stream": False}
        if json_format:
            payload["format"] = "json"
        return payload

    def _post(self, path: str, payload: Dict[str, Any]) -> httpx.Response:
        try:
            response = self.client.post(f"{self.endpoint}{path}", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise TranslationError(f"Ollama API error: {e}") from e
        return response

    def generate_raw(self, prompt: str, *, json_format: bool = True) -> str:
        """Return the undecoded response body of ``/api/generate``.

        Callers that want to unwrap the ``{"response": ...}`` envelope
        themselves use this.

        Raises:
            TranslationError: On transport or HTTP status errors
        """
        return self._post("/api/generate", self._payload(prompt, json_format)).text

    def generate(self, prompt: str, *, json_format: bool = True) -> str:
        """Return the ``response`` field of ``/api/generate``.

        Raises:
            TranslationError: On transport errors, HTTP errors or a non-JSON body
        """
        response = self._post("/api/generate", self._payload(prompt, json_format))
        try:
            result = response.json()
        except ValueError as e:
            raise TranslationError(f"Ollama returned a non-JSON body: {e}") from e
        if not isinstance(result, dict):
            raise TranslationError("Ollama returned an unexpected body.")
        return str(result.get("response", ""))

    def is_available(self) -> bool:
        """True when ``/api/show`` knows the configured model."""
        try:
            self._post("/api/show", {"name": self.model})
        except TranslationError:
            return False
        return True

    def close(self) -> None:
        self.client.close()
