"""Prompts sent to AI providers."""

from __future__ import annotations

from dataclasses import dataclass, field

import jinja2

from gitsage.provider import DiffChunk, DiffStats, GenerateRequest

DEFAULT_SYSTEM_PROMPT = """You are a principal software architect reviewing a code change (a diff).
Turn it into one Conventional Commits message that states the intent of the change clearly and precisely.

How to think about the change:
1. Insight: look past line counts to the purpose behind them. New null checks or
   exception handling usually mean hardening; async or threading changes usually
   mean concurrency work.
2. Abstraction: map long, language-specific paths to a functional module and use
   it as the scope. A user controller becomes 'user', a frontend component
   becomes 'ui', a database package becomes 'db'.
3. Aggregation: merge changes to several files that serve one goal into one line.

Output format (plain text, no Markdown code fences):

<type>(<scope>): <concise title, in Chinese>

- <scope>: <what problem was solved or what value was added, in Chinese>
- <scope>: <details>
- chore: <dependency updates, only when relevant>

Quality rules:
1. Use standard engineering vocabulary (decoupling, refactoring, interface
   definition, dependency injection, thread safety) rather than casual wording.
2. Never mention raw paths such as 'src/...' or 'internal/...', nor file
   extensions, in the body; use module names instead.
3. When backend, frontend and configuration all change, list every one of them.

Example
Changes: a field added to a backend user entity, a frontend view that shows it,
and an update to the build file.
Output:
feat(user, ui): 新增用户属性并在详情页展示

- user: 为用户领域模型增加新属性
- ui: 在用户详情页展示新属性
- chore: 调整构建依赖

Now analyse the diff that follows and output the final commit message."""

DEFAULT_USER_PROMPT_TEMPLATE = """Write a commit message for the code changes below.
{% if previous_attempt %}
> Note: The user rejected the previous attempt. Improve on it:
{{ previous_attempt }}
{% endif %}
[[CODE CHANGES / DIFF]]
{% if requires_chunking -%}
> Note: the diff is too large to include. Summary of changes:
{% for chunk in chunks -%}
- {{ chunk.file_path }} ({{ chunk.change_type }})
{% endfor -%}
{% else -%}
{% for chunk in chunks -%}
--- File: {{ chunk.file_path }} ---
{{ chunk.content }}

{% endfor -%}
{% endif %}
[[STATS]]
Files: {{ diff_stats.total_files }} | +{{ diff_stats.total_additions }} | -{{ diff_stats.total_deletions }}

[[FINAL INSTRUCTION]]
1. Title: one line in Chinese with the main intent.
2. Body: details grouped by module (scope); no file paths in the body.
3. Reply with the raw message text only."""

_ENVIRONMENT = jinja2.Environment(
    undefined=jinja2.StrictUndefined,
    keep_trailing_newline=True,
    autoescape=False,
)


@dataclass
class PromptData:
    """Values the user prompt template is rendered with."""

    diff_stats: DiffStats | None = None
    chunks: list[DiffChunk] = field(default_factory=list)
    requires_chunking: bool = False
    previous_attempt: str = ""
    custom_prompt: str = ""


class PromptTemplate:
    """A system prompt and a user prompt template."""

    def __init__(self, system_prompt: str = "", user_prompt: str = "") -> None:
        self.system_prompt = system_prompt or DEFAULT_SYSTEM_PROMPT
        self.user_prompt = user_prompt or DEFAULT_USER_PROMPT_TEMPLATE
        self._compiled: tuple[str, jinja2.Template] | None = None

    def _template(self) -> jinja2.Template:
        if self._compiled is None or self._compiled[0] != self.user_prompt:
            try:
                template = _ENVIRONMENT.from_string(self.user_prompt)
            except jinja2.TemplateError as exc:
                raise ValueError(f"invalid user prompt template: {exc}") from exc
            self._compiled = (self.user_prompt, template)
        return self._compiled[1]

    def render_user_prompt(self, data: PromptData) -> str:
        """Render the user prompt; a custom prompt in the data is used as is."""
        if data.custom_prompt:
            return data.custom_prompt
        try:
            return self._template().render(
                diff_stats=data.diff_stats,
                chunks=data.chunks,
                requires_chunking=data.requires_chunking,
                previous_attempt=data.previous_attempt,
                custom_prompt=data.custom_prompt,
            )
        except jinja2.TemplateError as exc:
            raise ValueError(f"failed to render user prompt: {exc}") from exc


def build_prompt_data(request: GenerateRequest, requires_chunking: bool) -> PromptData:
    """Prompt data taken from a generate request."""
    return PromptData(
        diff_stats=request.diff_stats,
        chunks=request.diff_chunks,
        requires_chunking=requires_chunking,
        previous_attempt=request.previous_attempt,
        custom_prompt=request.custom_prompt,
    )