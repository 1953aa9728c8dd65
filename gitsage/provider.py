"""Data types and the provider interface shared by the AI back ends."""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from enum import Enum


class ChangeType(str, Enum):
    """How a file was changed in a diff."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"

    def __str__(self) -> str:
        return self.value


@dataclass
class DiffChunk:
    """The diff of a single file."""

    file_path: str
    change_type: ChangeType = ChangeType.MODIFIED
    additions: int = 0
    deletions: int = 0
    content: str = ""
    is_lock_file: bool = False


@dataclass
class DiffStats:
    """Totals over all files of a diff."""

    total_files: int = 0
    total_additions: int = 0
    total_deletions: int = 0
    chunks: list[DiffChunk] = field(default_factory=list)


@dataclass
class GenerateRequest:
    """What a provider needs to generate a commit message."""

    diff_chunks: list[DiffChunk] = field(default_factory=list)
    diff_stats: DiffStats | None = None
    custom_prompt: str = ""
    previous_attempt: str = ""


@dataclass
class GenerateResponse:
    """A generated commit message, split into its parts."""

    subject: str = ""
    body: str = ""
    footer: str = ""
    raw_text: str = ""


@dataclass
class ProviderConfig:
    """Settings for one AI provider."""

    api_key: str = field(default="", repr=False)
    model: str = ""
    endpoint: str = ""
    temperature: float = 0.0
    max_tokens: int = 0


class Provider(abc.ABC):
    """An AI back end that turns diffs into commit messages."""

    name: str = ""

    @abc.abstractmethod
    def generate_commit_message(self, request: GenerateRequest) -> GenerateResponse:
        """Generate a commit message; raise ProviderError on failure."""

    @abc.abstractmethod
    def validate_config(self, config: ProviderConfig) -> None:
        """Raise ValueError if the configuration cannot be used."""


class ProviderError(Exception):
    """A failure talking to an AI provider, with an optional hint for the user."""

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        suggestion: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.suggestion = suggestion
        if cause is not None:
            self.__cause__ = cause

    def with_suggestion(self, suggestion: str) -> ProviderError:
        """Attach a suggestion and return the same error."""
        self.suggestion = suggestion
        return self

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class AuthenticationError(ProviderError):
    """The provider rejected the credentials."""

    def __init__(self, provider: str) -> None:
        super().__init__(
            f"authentication failed for {provider}",
            suggestion=f"Please check your {provider} API key",
        )
        self.provider = provider


class RateLimitError(ProviderError):
    """The provider asked the client to slow down."""

    def __init__(self, retry_after: float) -> None:
        super().__init__(
            f"rate limit exceeded, retry after {retry_after:g} seconds",
            suggestion="Please wait before retrying",
        )
        self.retry_after = retry_after


class ProviderTimeoutError(ProviderError):
    """The request to the provider took too long."""

    def __init__(self, cause: BaseException | None = None) -> None:
        super().__init__(
            "request to AI provider timed out",
            cause,
            suggestion="Please check your network connection and try again",
        )


class NetworkError(ProviderError):
    """The provider could not be reached."""

    def __init__(self, cause: BaseException | None = None) -> None:
        super().__init__(
            "network error",
            cause,
            suggestion="Please check your network connection",
        )