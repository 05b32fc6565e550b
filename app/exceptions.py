"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.

Every exception carries a machine-readable ``kind`` and an HTTP-style
``status_code``. ``public_message`` is safe to show to clients; ``str(exc)``
may contain internal detail and is only logged.
"""


class DesignSystemError(Exception):
    """Base exception for all design system errors."""

    kind: str = "InternalError"
    status_code: int = 500
    public_message: str = "An internal error occurred"

    def public_details(self) -> dict[str, object]:
        """Extra fields that are safe to include in an error response."""
        return {}


class InputValidationError(DesignSystemError):
    """Raised when input is malformed, oversized, or suspicious."""

    kind = "ValidationError"
    status_code = 400

    def __init__(self, message: str, field: str | None = None) -> None:
        self.message = message
        self.field = field
        self.public_message = message
        super().__init__(f"Validation failed: {message}")

    def public_details(self) -> dict[str, object]:
        return {"field": self.field} if self.field else {}


class UnknownTierError(InputValidationError):
    """Raised when a tier or plan name is not in the catalog."""

    def __init__(self, tier: str) -> None:
        self.tier = tier
        super().__init__(f"Unknown tier: {tier}", field="tier")


class InsufficientCreditsError(DesignSystemError):
    """Raised when account has insufficient balance for the action."""

    kind = "InsufficientCredits"
    status_code = 402

    def __init__(self, balance: int, required: int) -> None:
        self.balance = balance
        self.required = required
        self.public_message = (
            f"Insufficient credits. You need {required} credits but only have {balance}."
        )
        super().__init__(f"Insufficient credits. Balance: {balance}, Required: {required}")

    def public_details(self) -> dict[str, object]:
        return {"balance": self.balance, "required": self.required}


class AccountNotFoundError(DesignSystemError):
    """Raised when a credit account doesn't exist."""

    kind = "NotFound"
    status_code = 404
    public_message = "Credit account not found"

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(f"Credit account not found: {user_id}")


class VersionNotFoundError(DesignSystemError):
    """Raised when a design system version doesn't exist for the user."""

    kind = "NotFound"
    status_code = 404
    public_message = "Design system version not found"

    def __init__(self, version_id: str) -> None:
        self.version_id = version_id
        super().__init__(f"Design system version not found: {version_id}")


class GenerationTimeoutError(DesignSystemError):
    """Raised when the generative model exceeds its wall-clock budget."""

    kind = "GenerationTimeout"
    status_code = 408
    public_message = (
        "Generation took too long and was cancelled. "
        "Try again with a simpler description."
    )

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Generation exceeded {timeout_seconds}s timeout")


class InvalidAIResponseError(DesignSystemError):
    """Raised when the model replied but the content is unusable."""

    kind = "InvalidAIResponse"
    status_code = 502
    public_message = "The design generator returned an unusable response. Please try again."

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Invalid AI response: {message}")


class GenerationFailedError(DesignSystemError):
    """Raised when the generative model call fails for any other reason."""

    kind = "InternalError"
    status_code = 500
    public_message = "Design system generation failed. Please try again."

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Generation failed: {message}")


class RefinementDegradedError(DesignSystemError):
    """Raised by the AI step of refinement; the engine turns it into a degraded result."""

    kind = "RefinementDegraded"
    status_code = 200
    public_message = "Refinement failed. Original design returned."

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Refinement degraded: {message}")


class PersistenceError(DesignSystemError):
    """Raised when the store is unavailable or a write cannot be verified."""

    kind = "InternalError"
    status_code = 500
    public_message = "A storage error occurred. No changes were saved."

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Persistence error: {message}")


class AuthenticationError(DesignSystemError):
    """Raised when the caller identity is missing or invalid."""

    kind = "Unauthorized"
    status_code = 401

    def __init__(self, message: str) -> None:
        self.message = message
        self.public_message = message
        super().__init__(f"Authentication failed: {message}")


class RateLimitExceededError(DesignSystemError):
    """Raised when the external rate limiter denies a request."""

    kind = "RateLimited"
    status_code = 429
    public_message = "Rate limit exceeded. Please try again later."

    def __init__(self, reset_at: float) -> None:
        self.reset_at = reset_at
        super().__init__(f"Rate limit exceeded until {reset_at}")

    def public_details(self) -> dict[str, object]:
        return {"reset_at": self.reset_at}
