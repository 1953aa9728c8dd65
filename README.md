# gitsage

gitsage turns staged Git changes into commit messages in the Conventional
Commits format. It sends the diff to an AI provider, parses the reply into
type, scope, subject, body and footer, and drives a review loop (accept, edit,
regenerate or cancel) before committing and optionally pushing.

Supported providers:

- **OpenAI** (default model `gpt-4o-mini`; any OpenAI-compatible endpoint)
- **DeepSeek** (default model `deepseek-chat`)
- **Ollama** (local, default model `codellama`, default endpoint
  `http://localhost:11434`, no API key needed)

Install with the test extras for development:

```
pip install -e ".[test]"
pytest
```

## Modules

| Module | Purpose |
| --- | --- |
| `gitsage.provider` | Diff and request/response types, the `Provider` base class and the error classes |
| `gitsage.parser` | Parse and validate Conventional Commits messages |
| `gitsage.prompt` | The default system prompt and the user prompt template (`PromptTemplate`, `PromptData`, `build_prompt_data`) |
| `gitsage.openai_provider` | `OpenAIProvider`, plus the retry and error helpers |
| `gitsage.deepseek` | `DeepSeekProvider` |
| `gitsage.ollama` | `OllamaProvider` and `OllamaAPIError` |
| `gitsage.factory` | `ProviderSettings`, `new_provider`, `new_provider_with_custom_prompt` |
| `gitsage.service` | The commit workflow (`CommitService`, `CommitOptions`, `Action`, `HistoryEntry`) |

## Parsing commit messages

```python
from gitsage.parser import parse_commit_message, validate_commit_message

parsed = parse_commit_message(
    "feat(api): add user endpoint\n\n"
    "Adds an endpoint for creating users.\n\n"
    "Closes: #123"
)
parsed.commit_type       # "feat"
parsed.scope             # "api"
parsed.subject           # "add user endpoint"
parsed.body              # "Adds an endpoint for creating users."
parsed.footer            # "Closes: #123"
parsed.is_valid          # True
parsed.format_subject()  # "feat(api): add user endpoint"
parsed.format()          # the whole message again

validate_commit_message("invalid: some message")
# ["message does not follow Conventional Commits format", "missing commit type"]
```

Recognised types are `feat`, `fix`, `docs`, `style`, `refactor`, `test`,
`chore`, `perf`, `ci`, `build` and `revert` (`is_valid_commit_type` checks
one). Footer lines are those starting with trailers such as
`BREAKING CHANGE:`, `Refs:`, `Closes:`, `Fixes:`, `Signed-off-by:` (case
insensitive) or with `#`; `is_footer_line` tests a line. A subject line longer
than 100 bytes in UTF-8 is reported as an issue.

## Generating a message

```python
from gitsage.factory import ProviderSettings, new_provider
from gitsage.provider import ChangeType, DiffChunk, DiffStats, GenerateRequest

provider = new_provider(ProviderSettings(name="ollama"))

chunk = DiffChunk(
    file_path="main.go",
    change_type=ChangeType.MODIFIED,
    content="+// new comment",
    additions=1,
)
request = GenerateRequest(
    diff_chunks=[chunk],
    diff_stats=DiffStats(total_files=1, total_additions=1),
)

response = provider.generate_commit_message(request)
print(response.subject)
print(response.body)
```

`new_provider` raises `ValueError` for an unknown provider name; an empty name
selects OpenAI. OpenAI and DeepSeek need an API key of at least 20
characters, and an Ollama endpoint must start with `http://` or `https://`;
otherwise construction (and `validate_config`) raises `ValueError`. Unset
model, temperature (0.2) and max tokens (500) take the defaults.

A request with no diff chunks and no `custom_prompt` raises `ValueError`.
When the diff content exceeds 10 KB, the prompt lists only file names and
change types instead of the full diff.

Calls are retried with exponential backoff (1 s, 2 s, 4 s, capped at 10 s),
three attempts in all. OpenAI and DeepSeek retry on status 429, 500, 502, 503,
504 and on timeouts; Ollama retries on 500, 502, 503, 504 and on timeouts.
Failures surface as `ProviderError` or one of its subclasses,
`AuthenticationError`, `RateLimitError`, `ProviderTimeoutError` and
`NetworkError`; many carry a `suggestion` for the user. Request and response
details are logged at debug level through the `logging` module.

### Custom prompts

`new_provider_with_custom_prompt(settings, system_prompt, user_prompt)`
replaces either prompt; an empty string keeps the default. The user prompt is
a Jinja2 template rendered with `chunks`, `diff_stats`, `requires_chunking`,
`previous_attempt` and `custom_prompt`. When a request carries a
`custom_prompt`, that text is sent as the user prompt unchanged.

## The commit workflow

`CommitService(git_client, ai_provider, diff_processor, ui_manager,
history_manager=None, config=None, cache=None, validator=None)` runs the
workflow over objects you supply. `generate_and_commit(options)`:

1. Checks for staged changes; if there are none but there are unstaged ones,
   asks to stage everything.
2. Reads the staged diff and statistics and passes the chunks through the
   diff processor. If nothing is left, it raises `RuntimeError`.
3. Generates a message. Diffs over 10 KB spanning several files are handled in
   two phases: `group_files_by_size` groups files into batches of up to 4 KB
   (larger files stand alone), each group is summarised, two at a time, and
   the final message is written from those summaries. A group whose summary
   fails is listed by file name and line counts instead.
4. Shows the message with any validation warnings and asks for an `Action`:
   `ACCEPT`, `EDIT`, `REGENERATE` or `CANCEL`. Regeneration is limited to five
   attempts, after which `RuntimeError` is raised.
5. On accept or edit, records a `HistoryEntry` when history is enabled in the
   config, then commits, or with `CommitOptions(dry_run=True)` stops there or
   writes the message to `output_file`.
6. After a commit, offers to pull and push when a remote exists.

Failures in the workflow are raised as `RuntimeError` naming the step that
failed. `format_commit_message(response)` joins subject, body and footer with
blank lines, or falls back to the stripped raw text.

When a `cache` is given, identical diffs reuse a stored response unless
`no_cache` is set or the message is being regenerated.

The collaborators are duck-typed:

- `git_client`: `has_staged_changes()`, `has_unstaged_changes()`, `add_all()`,
  `get_staged_diff()`, `get_diff_stats()`, `commit(message)`, `has_remote()`,
  `pull()` (returning an object with `updated`, `updated_files` and
  `skipped`), `push()` and `push_with_upstream()`.
- `diff_processor`: `process(chunks)` returning an object with `chunks` and
  optionally `summary`.
- `ui_manager`: `show_spinner(text)` and `show_progress_spinner(text, total)`
  (objects with `start()`, `stop()`, and for progress `set_current(n)` and
  `set_current_file(name)`), `display_message`, `prompt_action`,
  `edit_message`, `prompt_confirm`, `show_success` and `show_error`.
- `history_manager`: `save(entry)`.
- `config`: `provider.model` and `history.enabled` attributes.
- `cache`: `get(key)` and `set(key, value)`.

## What this package does not do

gitsage is a library. It has no command-line program, and it ships no
implementations of the collaborators above: it does not run `git` itself,
filter lock files from diffs, draw an interactive terminal interface, load or
save a configuration file, or store history or a cache on disk. Those are
supplied by the caller.