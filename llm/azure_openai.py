"""
Azure OpenAI Client Wrapper

Inference backend using the Azure OpenAI SDK directly.

DESIGN RULES:
- No retries; the agent loop decides what to do with a failure
- No prompt logging
"""

import logging
import time
from typing import Optional

from openai import AsyncAzureOpenAI

from app.core.config import Settings, settings as default_settings
from llm.base import InferenceClient, InferenceOptions

logger = logging.getLogger(__name__)


class AzureOpenAIInferenceClient(InferenceClient):
    """
    Inference client calling Azure OpenAI chat completions.

    top_k is not supported by the API and is ignored.
    """

    name = "azure_openai"

    def __init__(self, client: Optional[AsyncAzureOpenAI] = None, config: Optional[Settings] = None):
        self._config = config or default_settings
        self._model = self._config.azure_openai_deployment_name
        self._client = client or AsyncAzureOpenAI(
            api_key=self._config.azure_openai_api_key,
            api_version=self._config.azure_openai_api_version,
            azure_endpoint=self._config.azure_openai_endpoint,
        )

    async def _generate(self, prompt: str, options: InferenceOptions) -> str:
        start_time = time.time()

        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[{"role": "user", "content": prompt}],
            temperature=options.temperature,
            max_tokens=options.max_output_tokens,
            top_p=options.top_p,
        )

        latency_ms = int((time.time() - start_time) * 1000)
        tokens_used = response.usage.total_tokens if response.usage else 0
        logger.debug(f"{self.name} call: model={self._model} tokens={tokens_used} latency_ms={latency_ms}")

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
