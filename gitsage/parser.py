"""Parsing and validation of Conventional Commits messages."""

from __future__ import annotations

import re
from dataclasses import dataclass

from gitsage.provider import GenerateResponse

VALID_COMMIT_TYPES = (
    "feat", "fix", "docs", "style", "refactor",
    "test", "chore", "perf", "ci", "build", "revert",
)

_CONVENTIONAL_COMMIT = re.compile(
    r"(feat|fix|docs|style|refactor|test|chore|perf|ci|build|revert)(\([^)]+\))?:\s*(.+)"
)

_FOOTER_PREFIXES = tuple(
    prefix.upper()
    for prefix in (
        "BREAKING CHANGE:",
        "BREAKING-CHANGE:",
        "Refs:",
        "Closes:",
        "Fixes:",
        "Resolves:",
        "See:",
        "Co-authored-by:",
        "Signed-off-by:",
        "Reviewed-by:",
        "Acked-by:",
    )
)

MAX_SUBJECT_BYTES = 100


@dataclass
class ParsedCommitMessage:
    """A commit message split into its Conventional Commits parts."""

    commit_type: str = ""
    scope: str = ""
    subject: str = ""
    body: str = ""
    footer: str = ""
    is_valid: bool = False

    def to_generate_response(self, raw_text: str) -> GenerateResponse:
        """Convert to a response, keeping the original text."""
        return GenerateResponse(
            subject=self.format_subject(),
            body=self.body,
            footer=self.footer,
            raw_text=raw_text,
        )

    def format_subject(self) -> str:
        """The subject line in Conventional Commits form."""
        if not self.commit_type:
            return self.subject
        if self.scope:
            return f"{self.commit_type}({self.scope}): {self.subject}"
        return f"{self.commit_type}: {self.subject}"

    def format(self) -> str:
        """The whole commit message."""
        parts = [self.format_subject()]
        if self.body:
            parts += ["", self.body]
        if self.footer:
            if not self.body:
                parts.append("")
            parts += ["", self.footer]
        return "\n".join(parts)


def _parse_subject(subject: str, result: ParsedCommitMessage) -> None:
    match = _CONVENTIONAL_COMMIT.fullmatch(subject)
    if match:
        result.commit_type = match.group(1)
        if match.group(2):
            result.scope = match.group(2).strip("()")
        result.subject = match.group(3).strip()
        result.is_valid = True
        return

    result.subject = subject
    head, sep, tail = subject.partition(":")
    if sep and head and head.strip() in VALID_COMMIT_TYPES:
        result.commit_type = head.strip()
        result.subject = tail.strip()
        result.is_valid = True


def parse_commit_message(raw_text: str) -> ParsedCommitMessage:
    """Parse an AI response into subject, body and footer."""
    result = ParsedCommitMessage()
    raw_text = raw_text.strip()
    if not raw_text:
        return result

    first, *rest = raw_text.split("\n")
    _parse_subject(first.strip(), result)

    if rest:
        body_lines: list[str] = []
        footer_lines: list[str] = []
        in_footer = False
        blank_seen = False
        for line in rest:
            trimmed = line.strip()
            if not blank_seen and not trimmed:
                blank_seen = True
                continue
            if is_footer_line(trimmed):
                in_footer = True
            if in_footer:
                footer_lines.append(line)
            elif blank_seen:
                body_lines.append(line)
        result.body = "\n".join(body_lines).strip()
        result.footer = "\n".join(footer_lines).strip()

    return result


def is_footer_line(line: str) -> bool:
    """Whether a line starts a trailer such as 'Closes:' or an issue reference."""
    return line.upper().startswith(_FOOTER_PREFIXES) or line.startswith("#")


def is_valid_commit_type(commit_type: str) -> bool:
    """Whether the type is one of the Conventional Commits types."""
    return commit_type in VALID_COMMIT_TYPES


def validate_commit_message(raw_text: str) -> list[str]:
    """List the problems with a commit message; empty when it is valid."""
    issues: list[str] = []
    parsed = parse_commit_message(raw_text)

    if not parsed.is_valid:
        issues.append("message does not follow Conventional Commits format")

    if not parsed.commit_type:
        issues.append("missing commit type")
    elif not is_valid_commit_type(parsed.commit_type):
        issues.append("invalid commit type: " + parsed.commit_type)

    if not parsed.subject:
        issues.append("missing commit subject")

    if len(parsed.format_subject().encode("utf-8")) > MAX_SUBJECT_BYTES:
        issues.append("subject line exceeds 100 characters")

    return issues