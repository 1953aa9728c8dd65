"""The commit workflow: read the staged diff, ask the AI, then commit or save."""

from __future__ import annotations

import hashlib
import time
from collections.abc import Callable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from gitsage.parser import validate_commit_message
from gitsage.provider import DiffChunk, DiffStats, GenerateRequest, GenerateResponse

MAX_REGENERATION_ATTEMPTS = 5
MAX_GROUP_SIZE = 4 * 1024
MAX_CONCURRENT_GROUPS = 2
TWO_PHASE_THRESHOLD = 10 * 1024
SUMMARY_CONTENT_LIMIT = 2 * 1024
BATCH_DELAY = 1.0


class Action(Enum):
    """What the user chose to do with a generated message."""

    ACCEPT = "accept"
    EDIT = "edit"
    REGENERATE = "regenerate"
    CANCEL = "cancel"


@dataclass
class CommitOptions:
    """Options for one run of the commit workflow."""

    dry_run: bool = False
    output_file: str = ""
    skip_confirm: bool = False
    custom_prompt: str = ""
    no_cache: bool = False


@dataclass
class HistoryEntry:
    """A generated message as recorded in the history."""

    message: str
    diff_summary: str = ""
    provider: str = ""
    model: str = ""
    committed: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@contextmanager
def _failing(message: str) -> Iterator[None]:
    """Re-raise any failure inside the block with a message saying what failed."""
    try:
        yield
    except Exception as exc:
        raise RuntimeError(f"{message}: {exc}") from exc


def _byte_length(text: str) -> int:
    return len(text.encode("utf-8"))


def _truncate(content: str, limit: int) -> str:
    data = content.encode("utf-8")
    if len(data) <= limit:
        return content
    return data[:limit].decode("utf-8", errors="ignore") + "\n... [truncated]"


def _cache_key(diff: str, provider: str, model: str, custom_prompt: str) -> str:
    digest = hashlib.sha256()
    for part in (diff, provider, model, custom_prompt):
        digest.update(part.encode("utf-8"))
        digest.update(b"\0")
    return digest.hexdigest()


class CommitService:
    """Runs the commit workflow over injected git, AI, UI and history back ends.

    ``cache``, when given, needs ``get(key)`` returning the stored value or
    ``None`` and ``set(key, value)``. ``validator`` maps a message text to a
    list of warnings; by default the Conventional Commits checks are used.
    """

    def __init__(
        self,
        git_client: Any,
        ai_provider: Any,
        diff_processor: Any,
        ui_manager: Any,
        history_manager: Any = None,
        config: Any = None,
        cache: Any = None,
        validator: Callable[[str], Sequence[str]] | None = None,
    ) -> None:
        self.git_client = git_client
        self.ai_provider = ai_provider
        self.diff_processor = diff_processor
        self.ui_manager = ui_manager
        self.history_manager = history_manager
        self.config = config
        self.cache = cache
        self.validator = validator or validate_commit_message
        self.batch_delay = BATCH_DELAY

    @property
    def _model(self) -> str:
        provider = getattr(self.config, "provider", None)
        return getattr(provider, "model", "") or ""

    @property
    def _history_enabled(self) -> bool:
        history = getattr(self.config, "history", None)
        return bool(getattr(history, "enabled", False))

    @contextmanager
    def _spinning(self, text: str) -> Iterator[None]:
        spinner = self.ui_manager.show_spinner(text)
        spinner.start()
        try:
            yield
        finally:
            spinner.stop()

    def generate_and_commit(self, options: CommitOptions | None = None) -> None:
        """Run the workflow: stage, diff, generate, review, then commit or save."""
        options = options or CommitOptions()

        with _failing("failed to check staged changes"):
            has_staged = self.git_client.has_staged_changes()
        if not has_staged:
            self._stage_all()

        with self._spinning("Retrieving staged changes..."):
            with _failing("failed to get staged diff"):
                chunks = self.git_client.get_staged_diff()
            with _failing("failed to get diff stats"):
                stats = self.git_client.get_diff_stats()

        with self._spinning("Processing diff..."):
            with _failing("failed to process diff"):
                processed = self.diff_processor.process(chunks)

        if not processed.chunks:
            raise RuntimeError("no changes to commit after filtering lock files")

        self._review_loop(options, processed, stats)

    def _stage_all(self) -> None:
        with _failing("failed to check unstaged changes"):
            has_unstaged = self.git_client.has_unstaged_changes()
        if not has_unstaged:
            raise RuntimeError("no changes found. Nothing to commit")

        with _failing("failed to prompt user"):
            confirmed = self.ui_manager.prompt_confirm(
                "No staged changes found. Run 'git add .' to stage all changes?"
            )
        if not confirmed:
            raise RuntimeError(
                "no staged changes. Use 'git add' to stage changes "
                "before generating a commit message"
            )

        with self._spinning("Staging all changes..."):
            with _failing("failed to stage changes"):
                self.git_client.add_all()
        self.ui_manager.show_success("All changes staged")

    def _review_loop(self, options: CommitOptions, processed: Any, stats: DiffStats | None) -> None:
        previous_attempt = ""
        regenerations = 0

        while True:
            with _failing("failed to generate commit message"):
                response = self._generate(
                    processed, stats, options.custom_prompt, previous_attempt, options.no_cache
                )
            with _failing("failed to display message"):
                self.ui_manager.display_message(response)
            self._validate_and_warn(response)
            with _failing("failed to get user action"):
                action = self.ui_manager.prompt_action()

            if action is Action.ACCEPT:
                self._handle_accept(options, response, processed)
                return
            if action is Action.EDIT:
                try:
                    edited = self.ui_manager.edit_message(response)
                except Exception as exc:
                    self.ui_manager.show_error(RuntimeError(f"failed to edit message: {exc}"))
                    continue
                self._handle_accept(options, edited, processed)
                return
            if action is Action.REGENERATE:
                regenerations += 1
                if regenerations >= MAX_REGENERATION_ATTEMPTS:
                    self.ui_manager.show_error(
                        RuntimeError(
                            f"maximum regeneration attempts ({MAX_REGENERATION_ATTEMPTS}) reached"
                        )
                    )
                    raise RuntimeError("maximum regeneration attempts reached")
                previous_attempt = self._format_for_context(response)
                continue
            if action is Action.CANCEL:
                self.ui_manager.show_success("Commit cancelled")
                return

    def _generate(
        self,
        processed: Any,
        stats: DiffStats | None,
        custom_prompt: str,
        previous_attempt: str,
        no_cache: bool,
    ) -> GenerateResponse:
        diff_content = "".join(chunk.content for chunk in processed.chunks)

        key = ""
        if self.cache is not None and not no_cache and not previous_attempt:
            key = _cache_key(diff_content, self.ai_provider.name, self._model, custom_prompt)
            cached = self.cache.get(key)
            if isinstance(cached, GenerateResponse):
                return cached

        if _byte_length(diff_content) > TWO_PHASE_THRESHOLD and len(processed.chunks) > 1:
            response = self._generate_two_phase(processed, stats, previous_attempt)
        else:
            with self._spinning("Generating commit message..."):
                response = self.ai_provider.generate_commit_message(
                    GenerateRequest(
                        diff_chunks=list(processed.chunks),
                        diff_stats=stats,
                        custom_prompt=custom_prompt,
                        previous_attempt=previous_attempt,
                    )
                )

        if key and response is not None:
            self.cache.set(key, response)
        return response

    def _generate_two_phase(
        self, processed: Any, stats: DiffStats | None, previous_attempt: str
    ) -> GenerateResponse:
        groups = self.group_files_by_size(processed.chunks)
        progress = self.ui_manager.show_progress_spinner("Analyzing files", len(groups))
        progress.start()
        try:
            summaries = self._summarize_groups(groups, progress)
        finally:
            progress.stop()

        with self._spinning("Generating commit message..."):
            return self._generate_from_summaries(summaries, stats, previous_attempt)

    def _summarize_groups(self, groups: list[list[DiffChunk]], progress: Any) -> list[str]:
        summaries = [""] * len(groups)
        completed = 0
        with ThreadPoolExecutor(max_workers=MAX_CONCURRENT_GROUPS) as pool:
            for start in range(0, len(groups), MAX_CONCURRENT_GROUPS):
                batch = groups[start:start + MAX_CONCURRENT_GROUPS]
                first_files = [group[0].file_path for group in batch if group]
                if first_files:
                    progress.set_current_file(", ".join(first_files))

                futures = {
                    pool.submit(self._summarize_group, group): start + offset
                    for offset, group in enumerate(batch)
                }
                for future in as_completed(futures):
                    index = futures[future]
                    completed += 1
                    progress.set_current(completed)
                    try:
                        summaries[index] = future.result()
                    except Exception:
                        summaries[index] = "\n".join(
                            f"- {chunk.file_path} (+{chunk.additions} -{chunk.deletions})"
                            for chunk in groups[index]
                        )

                if start + MAX_CONCURRENT_GROUPS < len(groups):
                    time.sleep(self.batch_delay)
        return summaries

    def group_files_by_size(self, chunks: Sequence[DiffChunk]) -> list[list[DiffChunk]]:
        """Group files so each group stays under MAX_GROUP_SIZE; big files stand alone."""
        groups: list[list[DiffChunk]] = []
        current: list[DiffChunk] = []
        current_size = 0

        for chunk in chunks:
            size = _byte_length(chunk.content)
            if size >= MAX_GROUP_SIZE:
                if current:
                    groups.append(current)
                    current, current_size = [], 0
                groups.append([chunk])
                continue
            if current and current_size + size > MAX_GROUP_SIZE:
                groups.append(current)
                current, current_size = [], 0
            current.append(chunk)
            current_size += size

        if current:
            groups.append(current)
        return groups

    def _summarize_group(self, group: list[DiffChunk]) -> str:
        sections = "".join(
            f"=== {chunk.file_path} ({chunk.change_type}, +{chunk.additions} "
            f"-{chunk.deletions}) ===\n{_truncate(chunk.content, SUMMARY_CONTENT_LIMIT)}\n\n"
            for chunk in group
        )
        prompt = (
            "简要描述以下文件的改动（每个文件一句话，不超过20字，中文）:\n\n"
            f"{sections}\n\n"
            "格式:\n"
            "- 文件名: 改动描述"
        )
        response = self.ai_provider.generate_commit_message(GenerateRequest(custom_prompt=prompt))
        return response.raw_text.strip() or response.subject

    def _generate_from_summaries(
        self, summaries: list[str], stats: DiffStats | None, previous_attempt: str
    ) -> GenerateResponse:
        stats = stats or DiffStats()
        joined = "\n".join(summary for summary in summaries if summary)
        retry_note = (
            f"\n上次生成的不满意，请重新生成:\n{previous_attempt}" if previous_attempt else ""
        )
        prompt = (
            "根据以下文件改动摘要，生成一个 Conventional Commits 格式的 commit message（中文）:\n\n"
            f"文件数: {stats.total_files}\n"
            f"总添加: {stats.total_additions} 行\n"
            f"总删除: {stats.total_deletions} 行\n\n"
            "各文件改动:\n"
            f"{joined}\n\n"
            f"{retry_note}\n\n"
            "要求:\n"
            "1. Subject 格式: <type>(<scope>): <简短描述>（不超过50字）\n"
            "2. Body 必须包含：按模块/目录分组列出主要改动，每个模块一行，格式如：\n"
            "   - 模块名: 具体功能描述\n"
            "3. 如果有多个模块，都要列出\n"
            "4. 只输出 commit message，不要解释"
        )
        return self.ai_provider.generate_commit_message(
            GenerateRequest(custom_prompt=prompt, diff_stats=stats)
        )

    def _validate_and_warn(self, response: GenerateResponse | None) -> None:
        if response is None:
            return
        raw_text = response.raw_text
        if not raw_text:
            raw_text = response.subject
            if response.body:
                raw_text += "\n\n" + response.body
            if response.footer:
                raw_text += "\n\n" + response.footer
        for warning in self.validator(raw_text):
            self.ui_manager.show_error(RuntimeError(f"warning: {warning}"))

    def _handle_accept(
        self, options: CommitOptions, response: GenerateResponse | None, processed: Any
    ) -> None:
        message = self.format_commit_message(response)

        if self.history_manager is not None and self._history_enabled:
            entry = HistoryEntry(
                message=message,
                diff_summary=getattr(processed, "summary", "") or "",
                provider=self.ai_provider.name,
                model=self._model,
                committed=not options.dry_run,
            )
            try:
                self.history_manager.save(entry)
            except Exception as exc:
                self.ui_manager.show_error(
                    RuntimeError(f"warning: failed to save to history: {exc}")
                )

        if options.dry_run:
            if options.output_file:
                self._write_to_file(options.output_file, message)
                return
            self.ui_manager.show_success("Dry-run complete - message generated but not committed")
            return

        with _failing("failed to commit"):
            with self._spinning("Committing changes..."):
                self.git_client.commit(message)
        self.ui_manager.show_success("Successfully committed!")

        self._offer_push()

    def _offer_push(self) -> None:
        try:
            if not self.git_client.has_remote():
                return
            if not self.ui_manager.prompt_confirm("Push to remote repository?"):
                return
        except Exception:
            return

        try:
            with self._spinning("Pulling from remote..."):
                pull_result = self.git_client.pull()
        except Exception as exc:
            self.ui_manager.show_error(RuntimeError(f"failed to pull: {exc}"))
            return

        if pull_result.updated:
            self.ui_manager.show_success(
                f"Pulled {pull_result.updated_files} file(s) from remote"
            )
            try:
                if not self.ui_manager.prompt_confirm("Remote has updates. Continue with push?"):
                    return
            except Exception:
                return

        try:
            with self._spinning("Pushing to remote..."):
                if pull_result.skipped:
                    self.git_client.push_with_upstream()
                else:
                    self.git_client.push()
        except Exception as exc:
            self.ui_manager.show_error(RuntimeError(f"failed to push: {exc}"))
            return

        self.ui_manager.show_success("Pushed to remote!")

    def format_commit_message(self, response: GenerateResponse | None) -> str:
        """The commit message text for a response: structured parts, else the raw text."""
        if response is None:
            return ""
        if response.subject:
            parts = [response.subject]
            if response.body:
                parts += ["", response.body]
            if response.footer:
                parts += ["", response.footer]
            return "\n".join(parts)
        return response.raw_text.strip()

    def _format_for_context(self, response: GenerateResponse | None) -> str:
        if response is None:
            return ""
        return response.raw_text or self.format_commit_message(response)

    def _write_to_file(self, path: str, content: str) -> None:
        try:
            Path(path).write_text(content, encoding="utf-8")
        except OSError as exc:
            raise RuntimeError(f"failed to write to file {path}: {exc}") from exc
        self.ui_manager.show_success(f"Message written to {path}")