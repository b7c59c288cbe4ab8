"""Tests for exception hierarchy."""

import pytest

from journal.core.exceptions import (
    CacheUnavailableError,
    ConfigurationError,
    ConversationStateError,
    ConversationStateNotFoundError,
    ImmutableFieldError,
    InvalidPhaseTransitionError,
    JournalSystemError,
    LLMAPIError,
    LLMConnectionError,
    LLMError,
    LLMInvalidResponseError,
    LLMRateLimitError,
    LLMTimeoutError,
    MemoryStoreError,
    ValidationError,
)


def test_exception_hierarchy():
    """All exceptions inherit from JournalSystemError."""
    for exc in (
        ConfigurationError,
        LLMError,
        ConversationStateError,
        MemoryStoreError,
        CacheUnavailableError,
        ValidationError,
    ):
        assert issubclass(exc, JournalSystemError)

    assert issubclass(LLMTimeoutError, LLMError)
    assert issubclass(LLMRateLimitError, LLMError)
    assert issubclass(LLMInvalidResponseError, LLMError)
    assert issubclass(LLMAPIError, LLMError)
    assert issubclass(LLMConnectionError, LLMError)
    assert issubclass(ConversationStateNotFoundError, ConversationStateError)
    assert issubclass(InvalidPhaseTransitionError, ConversationStateError)
    assert issubclass(ImmutableFieldError, ConversationStateError)


def test_not_found_carries_key():
    error = ConversationStateNotFoundError("sess-9", "2026-10-19")
    assert error.session_id == "sess-9"
    assert error.date == "2026-10-19"
    assert "sess-9" in error.message
    assert "2026-10-19" in str(error)


def test_api_error_carries_status():
    error = LLMAPIError("openai returned HTTP 401", status_code=401)
    assert error.status_code == 401
    assert error.message == "openai returned HTTP 401"


def test_exceptions_can_be_raised():
    with pytest.raises(ConversationStateError):
        raise InvalidPhaseTransitionError("Cannot move back")
