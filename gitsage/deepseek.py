"""Commit message generation through the DeepSeek API."""

from __future__ import annotations

from dataclasses import replace

from gitsage.openai_provider import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    MIN_API_KEY_LENGTH,
    RATE_LIMIT_RETRY_AFTER,
    _RETRYABLE_STATUSES,
    APIError,
    _build_chat_payload,
    _complete,
    _is_timeout,
)
from gitsage.parser import parse_commit_message
from gitsage.prompt import PromptTemplate
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

DEFAULT_DEEPSEEK_MODEL = "deepseek-chat"
DEFAULT_DEEPSEEK_ENDPOINT = "https://api.deepseek.com/v1"


def _validate_deepseek_config(config: ProviderConfig) -> None:
    if not config.api_key:
        raise ValueError("API key is required for DeepSeek provider")
    if len(config.api_key) < MIN_API_KEY_LENGTH:
        raise ValueError("API key appears to be invalid (too short)")


class DeepSeekProvider(Provider):
    """Generates commit messages with DeepSeek's OpenAI-compatible API."""

    name = "deepseek"

    def __init__(self, config: ProviderConfig) -> None:
        _validate_deepseek_config(config)
        self.config = replace(
            config,
            model=config.model or DEFAULT_DEEPSEEK_MODEL,
            endpoint=config.endpoint or DEFAULT_DEEPSEEK_ENDPOINT,
            temperature=config.temperature or DEFAULT_TEMPERATURE,
            max_tokens=config.max_tokens or DEFAULT_MAX_TOKENS,
        )
        self.prompt_template = PromptTemplate()

    def validate_config(self, config: ProviderConfig) -> None:
        """Raise ValueError if the configuration cannot be used."""
        _validate_deepseek_config(config)

    def generate_commit_message(
        self, request: GenerateRequest | None
    ) -> GenerateResponse:
        """Generate a commit message for the request."""
        payload = _build_chat_payload(self.prompt_template, self.config, request)
        content = _complete(
            self.name,
            self.config.endpoint,
            self.config,
            payload,
            is_deepseek_retryable_error,
            wrap_deepseek_api_error,
        )
        if content is None:
            raise ProviderError("no response from DeepSeek provider")
        return parse_commit_message(content).to_generate_response(content)

    def set_prompt_template(self, template: PromptTemplate | None) -> None:
        """Use a different prompt template; None leaves the current one."""
        if template is not None:
            self.prompt_template = template


def is_deepseek_retryable_error(error: BaseException | None) -> bool:
    """Whether a failed DeepSeek call is worth retrying."""
    if error is None:
        return False
    if isinstance(error, APIError) and error.http_status_code in _RETRYABLE_STATUSES:
        return True
    return _is_timeout(error)


def wrap_deepseek_api_error(error: BaseException | None) -> ProviderError | None:
    """Turn a low-level DeepSeek failure into a ProviderError for the user."""
    if error is None:
        return None
    if isinstance(error, APIError):
        status = error.http_status_code
        if status == 401:
            return AuthenticationError("DeepSeek")
        if status == 429:
            return RateLimitError(RATE_LIMIT_RETRY_AFTER)
        if status == 400:
            return ProviderError(f"DeepSeek invalid request: {error.message}", error)
        if status == 402:
            return ProviderError("DeepSeek payment required", error).with_suggestion(
                "Please check your DeepSeek account balance"
            )
        if status == 403:
            return ProviderError("DeepSeek access forbidden", error).with_suggestion(
                "Please check your API key permissions"
            )
        return ProviderError(
            f"DeepSeek API error (status {status}): {error.message}", error
        )
    if _is_timeout(error):
        return ProviderTimeoutError(error)
    return ProviderError("AI provider DeepSeek failed", error)