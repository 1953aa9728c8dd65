import pytest
from hypothesis import given
from hypothesis import strategies as st

from gitsage.prompt import (
    DEFAULT_SYSTEM_PROMPT,
    DEFAULT_USER_PROMPT_TEMPLATE,
    PromptData,
    PromptTemplate,
    build_prompt_data,
)
from gitsage.provider import ChangeType, DiffChunk, DiffStats, GenerateRequest

VALID_TYPES = ["feat", "fix", "docs", "style", "refactor", "test", "chore", "perf", "ci", "build", "revert"]

diff_chunks = st.builds(
    DiffChunk,
    file_path=st.from_regex(r"[a-z][a-z0-9]*", fullmatch=True).map(lambda s: s + ".go"),
    change_type=st.sampled_from([ChangeType.ADDED, ChangeType.MODIFIED, ChangeType.DELETED]),
    additions=st.integers(0, 100),
    deletions=st.integers(0, 100),
    content=st.text(),
    is_lock_file=st.just(False),
)
diff_stats = st.builds(
    DiffStats,
    total_files=st.integers(1, 50),
    total_additions=st.integers(0, 1000),
    total_deletions=st.integers(0, 1000),
)
prompt_data = st.builds(
    PromptData,
    diff_stats=diff_stats,
    chunks=st.lists(diff_chunks, min_size=5, max_size=5),
    requires_chunking=st.booleans(),
    previous_attempt=st.from_regex(r"[A-Za-z]*", fullmatch=True),
    custom_prompt=st.just(""),
)


def test_default_template_has_prompts():
    template = PromptTemplate()
    assert template.system_prompt == DEFAULT_SYSTEM_PROMPT
    assert template.user_prompt == DEFAULT_USER_PROMPT_TEMPLATE


def test_custom_template():
    template = PromptTemplate("Custom system prompt", "Custom user prompt")
    assert template.system_prompt == "Custom system prompt"
    assert template.user_prompt == "Custom user prompt"


def test_empty_custom_falls_back_to_default():
    template = PromptTemplate("", "")
    assert template.system_prompt == DEFAULT_SYSTEM_PROMPT
    assert template.user_prompt == DEFAULT_USER_PROMPT_TEMPLATE


def test_render_user_prompt():
    data = PromptData(
        diff_stats=DiffStats(total_files=2, total_additions=10, total_deletions=5),
        chunks=[DiffChunk(file_path="main.go", change_type=ChangeType.MODIFIED,
                          additions=5, deletions=2, content="diff content here")],
    )
    result = PromptTemplate().render_user_prompt(data)
    assert "+10" in result
    assert "diff content here" in result
    assert "--- File: main.go ---" in result
    assert "The user rejected the previous attempt" not in result


def test_render_user_prompt_with_chunking():
    data = PromptData(
        diff_stats=DiffStats(total_files=2, total_additions=100, total_deletions=50),
        chunks=[
            DiffChunk(file_path="main.go", change_type=ChangeType.MODIFIED, additions=50, deletions=25),
            DiffChunk(file_path="util.go", change_type=ChangeType.ADDED, additions=50,
                      deletions=25, content="hidden body"),
        ],
        requires_chunking=True,
    )
    result = PromptTemplate().render_user_prompt(data)
    assert "Summary of changes" in result
    assert "main.go" in result
    assert f"- util.go ({ChangeType.ADDED.value})" in result
    assert "hidden body" not in result


def test_render_custom_prompt_is_returned_verbatim():
    custom = "Generate a commit message for: test changes"
    assert PromptTemplate().render_user_prompt(PromptData(custom_prompt=custom)) == custom


def test_render_with_previous_attempt():
    data = PromptData(
        diff_stats=DiffStats(total_files=1),
        chunks=[DiffChunk(file_path="test.go", content="test diff")],
        previous_attempt="feat: previous attempt message",
    )
    result = PromptTemplate().render_user_prompt(data)
    assert "The user rejected the previous attempt" in result
    assert "feat: previous attempt message" in result


def test_render_without_stats_raises():
    data = PromptData(chunks=[DiffChunk(file_path="a.go")])
    with pytest.raises(ValueError):
        PromptTemplate().render_user_prompt(data)


def test_custom_user_template_is_rendered():
    template = PromptTemplate("", "{% for chunk in chunks %}{{ chunk.file_path }};{% endfor %}")
    data = PromptData(chunks=[DiffChunk(file_path="a.go"), DiffChunk(file_path="b.go")])
    assert template.render_user_prompt(data) == "a.go;b.go;"


def test_changed_user_template_is_recompiled():
    template = PromptTemplate("", "first")
    assert template.render_user_prompt(PromptData()) == "first"
    template.user_prompt = "second"
    assert template.render_user_prompt(PromptData()) == "second"


def test_invalid_user_template_raises():
    template = PromptTemplate("", "{% if %}")
    with pytest.raises(ValueError):
        template.render_user_prompt(PromptData())


def test_build_prompt_data():
    request = GenerateRequest(
        diff_chunks=[DiffChunk(file_path="test.go")],
        diff_stats=DiffStats(total_files=1),
        custom_prompt="custom",
        previous_attempt="previous",
    )
    data = build_prompt_data(request, True)
    assert data.diff_stats is request.diff_stats
    assert len(data.chunks) == len(request.diff_chunks)
    assert data.requires_chunking is True
    assert data.custom_prompt == "custom"
    assert data.previous_attempt == "previous"


def test_default_system_prompt_has_conventional_commits_instructions():
    system = PromptTemplate().system_prompt
    assert "Conventional Commits" in system
    assert "<type>(<scope>):" in system
    assert "chore" in system


@given(prompt_data)
def test_system_prompt_always_has_instructions(data):
    template = PromptTemplate()
    system = template.system_prompt
    assert "Conventional Commits" in system
    assert "<type>" in system or "type(scope)" in system
    assert any(commit_type in system for commit_type in VALID_TYPES)


@given(st.from_regex(r"[A-Za-z]*", fullmatch=True))
def test_empty_system_prompt_falls_back(user_prompt):
    assert "Conventional Commits" in PromptTemplate("", user_prompt).system_prompt


@given(prompt_data)
def test_user_prompt_renders_for_any_input(data):
    result = PromptTemplate().render_user_prompt(data)
    assert f"Files: {data.diff_stats.total_files} |" in result
    for chunk in data.chunks:
        assert chunk.file_path in result