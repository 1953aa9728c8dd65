import pytest

from gitsage.provider import (
    AuthenticationError,
    ChangeType,
    DiffChunk,
    DiffStats,
    GenerateRequest,
    GenerateResponse,
    NetworkError,
    Provider,
    ProviderConfig,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
)


def test_change_type_round_trips_through_its_value():
    for member in ChangeType:
        assert ChangeType(member.value) is member
        assert str(ChangeType(member.value)) == member.value


def test_diff_chunk_defaults():
    chunk = DiffChunk(file_path="main.go")
    assert chunk.additions == 0
    assert chunk.deletions == 0
    assert chunk.content == ""
    assert chunk.is_lock_file is False


def test_request_lists_are_not_shared():
    first = GenerateRequest()
    second = GenerateRequest()
    first.diff_chunks.append(DiffChunk(file_path="a.go"))
    assert second.diff_chunks == []
    assert first.diff_stats is None


def test_diff_stats_chunks_not_shared():
    first = DiffStats()
    first.chunks.append(DiffChunk(file_path="a.go"))
    assert DiffStats().chunks == []


def test_generate_response_defaults_empty():
    response = GenerateResponse()
    assert (response.subject, response.body, response.footer, response.raw_text) == ("", "", "", "")


def test_provider_config_repr_hides_api_key():
    config = ProviderConfig(api_key="placeholder", model="m")
    assert "placeholder" not in repr(config)
    assert config.api_key == "placeholder"


def test_provider_error_includes_cause():
    inner = ValueError("inner problem")
    err = ProviderError("outer", inner)
    assert str(err).startswith("outer")
    assert "inner problem" in str(err)
    assert err.__cause__ is inner


def test_provider_error_without_cause_is_message():
    err = ProviderError("just this")
    assert str(err) == "just this"


def test_with_suggestion_returns_same_error():
    err = ProviderError("failed")
    returned = err.with_suggestion("try again")
    assert returned is err
    assert err.suggestion == "try again"


def test_message_can_be_replaced():
    err = NetworkError(OSError("connection refused"))
    err.message = "cannot connect"
    assert str(err).startswith("cannot connect")
    assert "connection refused" in str(err)


def test_authentication_error_names_provider():
    err = AuthenticationError("OpenAI")
    assert isinstance(err, ProviderError)
    assert "OpenAI" in str(err)
    assert err.provider == "OpenAI"


def test_rate_limit_error_keeps_retry_after():
    err = RateLimitError(60)
    assert err.retry_after == 60
    assert "60" in str(err)


def test_timeout_error_keeps_cause():
    cause = TimeoutError("deadline")
    err = ProviderTimeoutError(cause)
    assert err.cause is cause
    with pytest.raises(ProviderError):
        raise err


def test_provider_is_abstract():
    with pytest.raises(TypeError):
        Provider()


def test_concrete_provider_is_usable():
    class EchoProvider(Provider):
        name = "echo"

        def generate_commit_message(self, request):
            return GenerateResponse(subject=request.custom_prompt)

        def validate_config(self, config):
            if not config.model:
                raise ValueError("model required")

    provider = EchoProvider()
    response = provider.generate_commit_message(GenerateRequest(custom_prompt="hello"))
    assert response.subject == "hello"
    with pytest.raises(ValueError):
        provider.validate_config(ProviderConfig())