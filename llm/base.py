"""
Inference Client Contract

Opaque text-generation capability used for step planning, free-text
reasoning and final answer synthesis.

DESIGN RULES:
- Sampling options are passed per call, never fixed globally
- Backend failures surface as InferenceError
- An empty completion is an error
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class InferenceError(Exception):
    """Raised when the inference backend fails or returns nothing."""


class InferenceOptions(BaseModel):
    """Per-call sampling configuration."""
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    max_output_tokens: int = Field(default=1000, ge=1)
    top_p: float = Field(default=0.8, ge=0.0, le=1.0)
    top_k: Optional[int] = Field(default=None, ge=1, description="Ignored by backends without top-k sampling")


class InferenceClient(ABC):
    """
    Abstract base for inference backends.

    Implement `_generate()`; `infer()` adds error normalization.
    """

    name: str = "inference"

    @abstractmethod
    async def _generate(self, prompt: str, options: InferenceOptions) -> str:
        """Backend-specific completion call."""
        pass

    async def infer(self, prompt: str, options: Optional[InferenceOptions] = None) -> str:
        """
        Generate text for a prompt.

        Args:
            prompt: Full prompt text
            options: Sampling options for this call

        Returns:
            Generated text

        Raises:
            InferenceError: on backend failure or empty output
        """
        try:
            output = await self._generate(prompt, options or InferenceOptions())
        except InferenceError:
            raise
        except Exception as e:
            raise InferenceError(f"{self.name} call failed: {e}") from e

        if not output or not output.strip():
            raise InferenceError(f"Empty response from {self.name}")
        return output

    async def test_connection(self) -> bool:
        """Probe the backend with a trivial prompt."""
        try:
            response = await self.infer(
                'Say "connection successful"',
                InferenceOptions(temperature=0.0, max_output_tokens=20),
            )
            logger.info(f"{self.name} connection successful: {response.strip()[:60]}")
            return True
        except InferenceError as e:
            logger.error(f"{self.name} connection failed: {e}")
            return False
