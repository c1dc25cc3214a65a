"""
LLM Provider Exceptions

All exceptions a provider client may raise. Every backend maps its SDK errors
onto exactly these three classes so the orchestrator can decide on fallback
without knowing which SDK is underneath.

Author: System Architect
Date: 2025-12-08
"""

from tutor_llm.core.exceptions.base import TutorBaseError


class ProviderError(TutorBaseError):
    """
    Base exception for LLM provider errors.

    ``transient`` tells the orchestrator whether another provider may succeed
    where this one failed.
    """

    transient: bool = False


class ProviderAuthError(ProviderError):
    """
    Raised when the provider rejects our credentials.

    Common causes:
    - Missing or invalid API key
    - Revoked or expired key
    - Insufficient permissions for the model

    Never retried and never routed to a fallback provider.
    """

    transient = False


class ProviderRateLimitError(ProviderError):
    """
    Raised when the provider throttles us.

    Common causes:
    - Requests-per-minute limit reached
    - Token quota exhausted
    """

    transient = True

    def __init__(self, message: str, conversation_id: str | None = None, details: dict | None = None):
        super().__init__(message, conversation_id=conversation_id, details=details)
        self.details.setdefault("suggestion", "Retry later")


class ProviderUnavailableError(ProviderError):
    """
    Raised when the provider cannot be reached or fails server-side.

    Common causes:
    - Network connectivity issues
    - Provider 5xx responses
    - Request exceeded the wall-clock timeout
    - Unclassified SDK errors
    """

    transient = True
