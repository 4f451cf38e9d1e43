"""
Custom exception hierarchy for the mediator service.

All application exceptions inherit from MediatorError.
"""


class MediatorError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(MediatorError):
    """Invalid or missing configuration."""

    pass


# =============================================================================
# LLM Errors
# =============================================================================


class LLMError(MediatorError):
    """Base for LLM-related errors."""

    pass


class LLMTimeoutError(LLMError):
    """LLM call timed out."""

    pass


class LLMRateLimitError(LLMError):
    """LLM rate limit exceeded."""

    pass


class LLMResponseParseError(LLMError):
    """Failed to parse LLM response."""

    pass


class GenerationError(LLMError):
    """Mediator reply could not be generated. Nothing was committed."""

    pass


class SafetyCheckUnavailableError(LLMError):
    """Safety classifier failed and the policy is to fail closed."""

    pass


# =============================================================================
# Session Errors
# =============================================================================


class SessionError(MediatorError):
    """Session-related error."""

    pass


class SessionNotFoundError(SessionError):
    """Session does not exist."""

    pass


class SessionNotActiveError(SessionError):
    """Operation requires an active session."""

    pass


class AccessDeniedError(SessionError):
    """User is not allowed to access or modify this session."""

    pass


class InvalidStatusTransitionError(SessionError):
    """Requested status change is not allowed from the current status."""

    pass


# =============================================================================
# Invite / Participant Errors
# =============================================================================


class InviteError(MediatorError):
    """User-visible, non-fatal invite or join failure."""

    pass


class InvalidInviteError(InviteError):
    """Invite code does not exist."""

    pass


class InviteExpiredError(InviteError):
    """Invite code is past its expiry."""

    pass


class ParticipantLimitError(InviteError):
    """Session already has the maximum number of participants."""

    pass


class AlreadyInitiatorError(InviteError):
    """The joining user started this session."""

    pass


class InviteSessionNotActiveError(InviteError, SessionNotActiveError):
    """Join attempted on a session that is no longer active."""

    pass


class ValidationError(MediatorError):
    """Input validation failed."""

    pass


class AuthenticationError(MediatorError):
    """Caller identity was not supplied by the upstream authenticator."""

    pass
