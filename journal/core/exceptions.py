"""
Custom exception hierarchy for the journal service.

All application exceptions inherit from JournalSystemError.
"""


class JournalSystemError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(JournalSystemError):
    """Invalid or missing configuration."""

    pass


# =============================================================================
# LLM Errors
# =============================================================================


class LLMError(JournalSystemError):
    """Base for LLM-related errors."""

    pass


class LLMTimeoutError(LLMError):
    """LLM call timed out."""

    pass


class LLMRateLimitError(LLMError):
    """LLM rate limit exceeded."""

    pass


class LLMInvalidResponseError(LLMError):
    """LLM returned invalid or unexpected response."""

    pass


class LLMAPIError(LLMError):
    """LLM provider answered with a non-retryable HTTP error."""

    def __init__(self, message: str, status_code: int):
        self.status_code = status_code
        super().__init__(message)


class LLMConnectionError(LLMError):
    """LLM provider could not be reached."""

    pass


# =============================================================================
# Conversation State Errors
# =============================================================================


class ConversationStateError(JournalSystemError):
    """Conversation state related error."""

    pass


class ConversationStateNotFoundError(ConversationStateError):
    """No state was initialized for the (session_id, date) pair."""

    def __init__(self, session_id: str, date: str):
        self.session_id = session_id
        self.date = date
        super().__init__(
            f"Conversation state not found for session {session_id} on {date}. "
            "Initialize state first."
        )


class InvalidPhaseTransitionError(ConversationStateError):
    """Attempted to move the session phase backwards."""

    pass


class ImmutableFieldError(ConversationStateError):
    """Attempted to overwrite a write-once field."""

    pass


# =============================================================================
# External Service Errors
# =============================================================================


class MemoryStoreError(JournalSystemError):
    """Long-term memory store query failed."""

    pass


class CacheUnavailableError(JournalSystemError):
    """Conversation state cache could not be reached."""

    pass


# =============================================================================
# Input Errors
# =============================================================================


class ValidationError(JournalSystemError):
    """Input validation failed."""

    pass
