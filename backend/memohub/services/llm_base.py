"""
MemoHub Backend — Abstract LLM Service Interface
=================================================

What:  Contract for text-generation providers used by the AI features.
How:   Concrete classes implement generate_text() and health_check();
       AIService depends only on this interface, so tests pass a stub.
"""

from abc import ABC, abstractmethod


class LLMService(ABC):
    """
    Abstract interface for prompt-in, text-out generation.

    Contract:
        - generate_text() returns the model's plain-text answer (may be "")
        - Implementations handle their own retry logic and error translation
        - Every provider failure surfaces as a DependencyFailureError
          subclass (LLMServiceError, CircuitBreakerOpenError)
    """

    @abstractmethod
    async def generate_text(self, prompt: str) -> str:
        """
        Send `prompt` to the model and return its text answer.

        Raises:
            LLMServiceError: the provider failed after all retries, or is
                not configured.
            CircuitBreakerOpenError: too many recent failures; the call was
                rejected without contacting the provider.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight reachability probe (no token cost). True if usable."""
        ...
