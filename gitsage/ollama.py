"""Commit message generation through a local Ollama server."""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Any

import httpx

from gitsage.openai_provider import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    DEFAULT_TIMEOUT,
    MAX_RETRIES,
    _build_chat_payload,
    _is_timeout,
    calculate_backoff,
)
from gitsage.parser import parse_commit_message
from gitsage.prompt import PromptTemplate
from gitsage.provider import (
    GenerateRequest,
    GenerateResponse,
    NetworkError,
    Provider,
    ProviderConfig,
    ProviderError,
    ProviderTimeoutError,
)

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_MODEL = "codellama"
DEFAULT_OLLAMA_ENDPOINT = "http://localhost:11434"
OLLAMA_API_PATH = "/api/chat"

_RETRYABLE_STATUSES = frozenset({500, 502, 503, 504})


class OllamaAPIError(Exception):
    """A non-success status returned by the Ollama API."""

    def __init__(self, status_code: int, message: str = "") -> None:
        super().__init__(f"ollama API error (status {status_code}): {message}")
        self.status_code = status_code
        self.message = message


def _validate_ollama_config(config: ProviderConfig) -> None:
    # Ollama runs locally, so no API key is needed; only the endpoint is checked.
    if config.endpoint and not config.endpoint.startswith(("https://", "http://")):
        raise ValueError("endpoint must start with http:// or https://")


class OllamaProvider(Provider):
    """Generates commit messages with a model served by Ollama."""

    name = "ollama"

    def __init__(self, config: ProviderConfig) -> None:
        _validate_ollama_config(config)
        self.config = replace(
            config,
            model=config.model or DEFAULT_OLLAMA_MODEL,
            endpoint=config.endpoint or DEFAULT_OLLAMA_ENDPOINT,
            temperature=config.temperature or DEFAULT_TEMPERATURE,
            max_tokens=config.max_tokens or DEFAULT_MAX_TOKENS,
        )
        self.prompt_template = PromptTemplate()

    def validate_config(self, config: ProviderConfig) -> None:
        """Raise ValueError if the configuration cannot be used."""
        _validate_ollama_config(config)

    def generate_commit_message(
        self, request: GenerateRequest | None
    ) -> GenerateResponse:
        """Generate a commit message for the request."""
        chat = _build_chat_payload(self.prompt_template, self.config, request)
        options: dict[str, Any] = {}
        if self.config.temperature:
            options["temperature"] = self.config.temperature
        if self.config.max_tokens:
            options["num_predict"] = self.config.max_tokens
        payload = {
            "model": self.config.model,
            "messages": chat["messages"],
            "stream": False,
            "options": options,
        }

        logger.debug(
            "ollama request: endpoint=%s model=%s prompt_length=%d",
            self.config.endpoint,
            self.config.model,
            len(chat["messages"][1]["content"]),
        )
        started = time.monotonic()
        data = self._request_with_retries(payload)

        message = data.get("message") or {}
        raw_text = message.get("content") or "" if isinstance(message, dict) else ""
        logger.debug(
            "ollama response: length=%d duration=%.2fs",
            len(raw_text),
            time.monotonic() - started,
        )

        if data.get("error"):
            raise ProviderError(f"ollama error: {data['error']}")

        logger.debug("raw AI response:\n%s", raw_text)
        parsed = parse_commit_message(raw_text)
        logger.debug(
            "parsed - type: %s, scope: %s, subject: %s, body: %s",
            parsed.commit_type,
            parsed.scope,
            parsed.subject,
            parsed.body,
        )
        return parsed.to_generate_response(raw_text)

    def set_prompt_template(self, template: PromptTemplate | None) -> None:
        """Use a different prompt template; None leaves the current one."""
        if template is not None:
            self.prompt_template = template

    def _request_with_retries(self, payload: dict[str, Any]) -> dict[str, Any]:
        last_error: BaseException | None = None
        for attempt in range(MAX_RETRIES):
            try:
                return self._do_request(payload)
            except (OllamaAPIError, httpx.HTTPError, OSError, ValueError) as exc:
                if not is_ollama_retryable_error(exc):
                    raise wrap_ollama_api_error(exc) from exc  # type: ignore[misc]
                last_error = exc
                delay = calculate_backoff(attempt)
                logger.debug(
                    "retry %d/%d after error: %s (waiting %.1fs)",
                    attempt + 1,
                    MAX_RETRIES,
                    exc,
                    delay,
                )
                time.sleep(delay)
        raise wrap_ollama_api_error(last_error) from last_error  # type: ignore[misc]

    def _do_request(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = self.config.endpoint + OLLAMA_API_PATH
        with httpx.Client(timeout=DEFAULT_TIMEOUT) as client:
            response = client.post(url, json=payload)
        if response.status_code != 200:
            raise OllamaAPIError(response.status_code, response.text)
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("failed to parse response: expected a JSON object")
        return data


def is_ollama_retryable_error(error: BaseException | None) -> bool:
    """Whether a failed Ollama call is worth retrying."""
    if error is None:
        return False
    if isinstance(error, OllamaAPIError) and error.status_code in _RETRYABLE_STATUSES:
        return True
    return _is_timeout(error)


def wrap_ollama_api_error(error: BaseException | None) -> ProviderError | None:
    """Turn a low-level Ollama failure into a ProviderError for the user."""
    if error is None:
        return None
    if isinstance(error, OllamaAPIError):
        status = error.status_code
        if status == 404:
            return ProviderError("Ollama model not found", error).with_suggestion(
                "Please ensure the model is pulled using 'ollama pull <model>'"
            )
        if status == 400:
            return ProviderError(f"Ollama invalid request: {error.message}", error)
        if status == 503:
            return ProviderError("Ollama service unavailable", error).with_suggestion(
                "Please ensure Ollama is running using 'ollama serve'"
            )
        return ProviderError(
            f"Ollama API error (status {status}): {error.message}", error
        )
    if _is_timeout(error):
        return ProviderTimeoutError(error).with_suggestion(
            "Please check if Ollama is running"
        )
    if isinstance(error, httpx.ConnectError) or "connection refused" in str(error).lower():
        network_error = NetworkError(error)
        network_error.message = "cannot connect to Ollama"
        return network_error.with_suggestion(
            "Please ensure Ollama is running using 'ollama serve'"
        )
    return ProviderError("AI provider Ollama failed", error)