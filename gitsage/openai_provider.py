"""Commit message generation through the OpenAI chat completions API."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import replace
from typing import Any, TypeVar

import httpx

from gitsage.parser import parse_commit_message
from gitsage.prompt import PromptTemplate, build_prompt_data
from gitsage.provider import (
    AuthenticationError,
    GenerateRequest,
    GenerateResponse,
    Provider,
    ProviderConfig,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_OPENAI_ENDPOINT = "https://api.openai.com/v1"
DEFAULT_TEMPERATURE = 0.2
DEFAULT_MAX_TOKENS = 500
DEFAULT_TIMEOUT = 30.0
MAX_RETRIES = 3
INITIAL_RETRY_DELAY = 1.0
MAX_RETRY_DELAY = 10.0
CHUNKING_THRESHOLD = 10 * 1024
RATE_LIMIT_RETRY_AFTER = 60.0
MIN_API_KEY_LENGTH = 20

_RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})

_T = TypeVar("_T")


class APIError(Exception):
    """An error status returned by an OpenAI-compatible API."""

    def __init__(self, http_status_code: int, message: str = "") -> None:
        super().__init__(
            f"error, status code: {http_status_code}, message: {message}"
        )
        self.http_status_code = http_status_code
        self.message = message


def _is_timeout(error: BaseException) -> bool:
    return isinstance(error, (TimeoutError, httpx.TimeoutException))


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return response.text


def _post_chat_completion(
    base_url: str, api_key: str, payload: dict[str, Any]
) -> dict[str, Any]:
    """Send one chat completion request and return the decoded reply."""
    url = base_url.rstrip("/") + "/chat/completions"
    with httpx.Client(timeout=DEFAULT_TIMEOUT) as client:
        response = client.post(
            url, json=payload, headers={"Authorization": f"Bearer {api_key}"}
        )
    if not response.is_success:
        raise APIError(response.status_code, _error_message(response))
    data = response.json()
    if not isinstance(data, dict):
        raise ValueError("unexpected response from chat completions API")
    return data


def _first_choice_content(data: dict[str, Any]) -> str | None:
    choices = data.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message") or {}
    return message.get("content") or ""


def _call_with_retries(
    call: Callable[[], _T],
    retryable: Callable[[BaseException | None], bool],
    wrap: Callable[[BaseException | None], ProviderError | None],
) -> _T:
    """Run the call, retrying with exponential backoff on retryable errors."""
    last_error: BaseException | None = None
    for attempt in range(MAX_RETRIES):
        try:
            return call()
        except (APIError, httpx.HTTPError, OSError, ValueError) as exc:
            if not retryable(exc):
                raise wrap(exc) from exc  # type: ignore[misc]
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
    raise wrap(last_error) from last_error  # type: ignore[misc]


def _request_size(request: GenerateRequest) -> int:
    return sum(len(chunk.content.encode("utf-8")) for chunk in request.diff_chunks)


def _build_chat_payload(
    template: PromptTemplate, config: ProviderConfig, request: GenerateRequest | None
) -> dict[str, Any]:
    if request is None:
        raise ValueError("request cannot be None")
    if not request.diff_chunks and not request.custom_prompt:
        raise ValueError("no diff chunks provided")

    data = build_prompt_data(request, _request_size(request) > CHUNKING_THRESHOLD)
    try:
        user_prompt = template.render_user_prompt(data)
    except ValueError as exc:
        raise ValueError(f"failed to render prompt: {exc}") from exc

    return {
        "model": config.model,
        "messages": [
            {"role": "system", "content": template.system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "temperature": config.temperature,
        "max_tokens": config.max_tokens,
    }


def _complete(
    provider_name: str,
    base_url: str,
    config: ProviderConfig,
    payload: dict[str, Any],
    retryable: Callable[[BaseException | None], bool],
    wrap: Callable[[BaseException | None], ProviderError | None],
) -> str | None:
    user_prompt = payload["messages"][1]["content"]
    logger.debug(
        "%s request: endpoint=%s model=%s prompt_length=%d",
        provider_name,
        base_url,
        config.model,
        len(user_prompt),
    )
    started = time.monotonic()
    data = _call_with_retries(
        lambda: _post_chat_completion(base_url, config.api_key, payload),
        retryable,
        wrap,
    )
    content = _first_choice_content(data)
    logger.debug(
        "%s response: length=%d duration=%.2fs",
        provider_name,
        len(content or ""),
        time.monotonic() - started,
    )
    return content


def _validate_openai_config(config: ProviderConfig) -> None:
    if not config.api_key:
        raise ValueError("API key is required for OpenAI provider")
    if len(config.api_key) < MIN_API_KEY_LENGTH:
        raise ValueError("API key appears to be invalid (too short)")


class OpenAIProvider(Provider):
    """Generates commit messages with an OpenAI or OpenAI-compatible API."""

    name = "openai"

    def __init__(self, config: ProviderConfig) -> None:
        _validate_openai_config(config)
        self.config = replace(
            config,
            model=config.model or DEFAULT_OPENAI_MODEL,
            temperature=config.temperature or DEFAULT_TEMPERATURE,
            max_tokens=config.max_tokens or DEFAULT_MAX_TOKENS,
        )
        self._base_url = self.config.endpoint or DEFAULT_OPENAI_ENDPOINT
        self.prompt_template = PromptTemplate()

    def validate_config(self, config: ProviderConfig) -> None:
        """Raise ValueError if the configuration cannot be used."""
        _validate_openai_config(config)

    def generate_commit_message(
        self, request: GenerateRequest | None
    ) -> GenerateResponse:
        """Generate a commit message for the request."""
        payload = _build_chat_payload(self.prompt_template, self.config, request)
        content = _complete(
            self.name,
            self._base_url,
            self.config,
            payload,
            is_retryable_error,
            wrap_api_error,
        )
        if content is None:
            raise ProviderError("no response from AI provider")
        return parse_commit_message(content).to_generate_response(content)

    def set_prompt_template(self, template: PromptTemplate | None) -> None:
        """Use a different prompt template; None leaves the current one."""
        if template is not None:
            self.prompt_template = template


def is_retryable_error(error: BaseException | None) -> bool:
    """Whether a failed call is worth retrying."""
    if error is None:
        return False
    if isinstance(error, APIError) and error.http_status_code in _RETRYABLE_STATUSES:
        return True
    return _is_timeout(error)


def calculate_backoff(attempt: int) -> float:
    """Seconds to wait before the given retry attempt."""
    return min(INITIAL_RETRY_DELAY * (1 << attempt), MAX_RETRY_DELAY)


def wrap_api_error(error: BaseException | None) -> ProviderError | None:
    """Turn a low-level failure into a ProviderError for the user."""
    if error is None:
        return None
    if isinstance(error, APIError):
        status = error.http_status_code
        if status == 401:
            return AuthenticationError("OpenAI")
        if status == 429:
            return RateLimitError(RATE_LIMIT_RETRY_AFTER)
        if status == 400:
            return ProviderError(f"invalid request: {error.message}", error)
        return ProviderError(f"API error (status {status}): {error.message}", error)
    if _is_timeout(error):
        return ProviderTimeoutError(error)
    return ProviderError("AI provider OpenAI failed", error)