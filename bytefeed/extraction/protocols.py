"""Protocol interface for generative-text provider clients."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class LlmClient(Protocol):
    """Protocol for generative-text provider clients.

    Any client that implements ``generate_content`` with the matching
    signature and exposes a ``name`` can sit in the provider chain,
    regardless of the vendor API behind it.
    """

    name: str

    def generate_content(
        self,
        prompt: str,
        system_instruction: str | None = None,
    ) -> str:
        """Generate text from a prompt.

        Args:
            prompt: User prompt text.
            system_instruction: Optional system-level instruction.

        Returns:
            Generated text from the model.

        Raises:
            LlmApiError: If the API call fails.
        """
        ...
