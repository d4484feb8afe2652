"""Domain-specific error types for the extraction module."""


class LlmAuthError(Exception):
    """No usable provider credentials are configured."""


class LlmApiError(Exception):
    """Provider API call failure.

    Attributes:
        status_code: HTTP status code from the API response (0 if none).
        provider: Name of the provider that failed.
    """

    def __init__(self, message: str, status_code: int = 0, provider: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.provider = provider


class LlmProcessingError(Exception):
    """Provider output could not be parsed into the expected structure."""


class ExtractionError(Exception):
    """Every provider in the chain failed for one document.

    Attributes:
        failures: ``(provider_name, reason)`` pairs in the order tried.
    """

    def __init__(self, failures: list[tuple[str, str]]) -> None:
        """Initialize the extraction error.

        Args:
            failures: Per-provider failure reasons in the order tried.
        """
        self.failures = failures
        if failures:
            detail = "; ".join(f"{name}: {reason}" for name, reason in failures)
        else:
            detail = "no providers configured"
        super().__init__(f"All extraction providers failed ({detail})")
