"""Resolution and provider-definition exceptions."""

from __future__ import annotations

from typing import ClassVar


class ResolutionError(Exception):
    """Base class for everything that can end one provider attempt.

    ``kind`` is a stable machine-readable tag used for diagnostics and
    retry decisions.  ``retryable`` marks transient failures.
    """

    kind: ClassVar[str] = "resolution_error"
    retryable: ClassVar[bool] = False

    def __init__(self, message: str = "", *, provider_key: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.provider_key = provider_key

    def describe(self) -> str:
        """Return ``"<kind>: <message>"`` for health/diagnostic output."""
        return f"{self.kind}: {self.message}" if self.message else self.kind


class UpstreamUnavailable(ResolutionError):
    """Non-2xx response or network failure."""

    kind = "upstream_unavailable"
    retryable = True

    def __init__(
        self,
        message: str = "",
        *,
        provider_key: str = "",
        status_code: int | None = None,
        url: str = "",
    ) -> None:
        super().__init__(message, provider_key=provider_key)
        self.status_code = status_code
        self.url = url


class ProviderTimeout(UpstreamUnavailable):
    """A hop, a provider attempt, or the whole resolution ran out of time."""

    kind = "timeout"


class ChallengeDetected(ResolutionError):
    """A bot-mitigation page was returned instead of content."""

    kind = "challenge_detected"

    def __init__(
        self, message: str = "", *, provider_key: str = "", url: str = ""
    ) -> None:
        super().__init__(message, provider_key=provider_key)
        self.url = url


class TokenNotFound(ResolutionError):
    """A hop's extractor pattern matched nothing (markup changed)."""

    kind = "token_not_found"

    def __init__(
        self,
        message: str = "",
        *,
        provider_key: str = "",
        hop_index: int | None = None,
    ) -> None:
        super().__init__(message, provider_key=provider_key)
        self.hop_index = hop_index


class DecodeStepFailed(ResolutionError):
    """A single decode primitive could not process its input."""

    kind = "decode_step_failed"

    def __init__(self, step: str, reason: str) -> None:
        super().__init__(f"{step}: {reason}")
        self.step = step
        self.reason = reason


class PaddingInvalid(DecodeStepFailed):
    """AES-CBC decrypted, but the PKCS#7 padding was malformed."""

    kind = "padding_invalid"


class KeyMismatch(DecodeStepFailed):
    """The configured key/IV cannot be used for the ciphertext."""

    kind = "key_mismatch"


class DecodePipelineFailed(ResolutionError):
    """A provider's decode pipeline aborted at ``step_index``."""

    kind = "decode_pipeline_failed"

    def __init__(
        self, *, provider_key: str, step_index: int, cause: DecodeStepFailed
    ) -> None:
        super().__init__(
            f"step {step_index} ({cause.kind}) {cause.message}",
            provider_key=provider_key,
        )
        self.step_index = step_index
        self.cause = cause


class ValidationFailed(ResolutionError):
    """Decoding produced output that does not have the expected shape."""

    kind = "validation_failed"


# Failures that indicate the provider's scheme drifted rather than a
# transient upstream problem.
DRIFT_ERRORS: tuple[type[ResolutionError], ...] = (
    TokenNotFound,
    DecodePipelineFailed,
    ValidationFailed,
)


class AggregateResolutionError(Exception):
    """Every provider was exhausted; ``attempts`` is in priority order."""

    def __init__(self, attempts: list[ResolutionError]) -> None:
        self.attempts = list(attempts)
        keys = ", ".join(a.provider_key for a in self.attempts) or "none"
        super().__init__(f"all providers failed (attempted: {keys})")

    @property
    def provider_keys(self) -> list[str]:
        return [a.provider_key for a in self.attempts]


class ProviderError(Exception):
    """Base class for provider-descriptor errors."""


class ProviderValidationError(ProviderError):
    """Raised when a provider YAML file fails schema validation."""


class ProviderLoadError(ProviderError):
    """Raised when a provider file cannot be read or parsed."""


class ProviderNotFoundError(ProviderError):
    """Raised when a provider key is not known to the registry."""


class DuplicateProviderError(ProviderError):
    """Raised when two descriptors declare the same key."""
