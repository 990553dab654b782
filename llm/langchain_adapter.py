"""
LangChain Adapter

Inference backend built on LangChain's AzureChatOpenAI.
Exposes simple Python types only - NO LangChain objects leak out.

DESIGN RULES:
- LangChain stays INSIDE this module
- Sampling options bound per call
- Token usage tracked with the OpenAI callback, logged at debug level
"""

import logging
import time
from typing import Any, Optional

from langchain_community.callbacks import get_openai_callback
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage
from langchain_openai import AzureChatOpenAI

from app.core.config import Settings, settings as default_settings
from llm.base import InferenceClient, InferenceOptions

logger = logging.getLogger(__name__)


def build_chat_model(config: Settings) -> AzureChatOpenAI:
    """Get configured AzureChatOpenAI instance."""
    return AzureChatOpenAI(
        azure_deployment=config.azure_openai_deployment_name,
        openai_api_version=config.azure_openai_api_version,
        azure_endpoint=config.azure_openai_endpoint,
        api_key=config.azure_openai_api_key,
        temperature=0.1,
    )


class LangChainInferenceClient(InferenceClient):
    """
    Inference client backed by a LangChain chat model.

    Args:
        llm: Chat model to use. Built from settings when omitted.
        config: Settings used to build the default model.
    """

    name = "langchain_azure"

    def __init__(self, llm: Optional[BaseChatModel] = None, config: Optional[Settings] = None):
        self._config = config or default_settings
        self._llm = llm or build_chat_model(self._config)

    async def _generate(self, prompt: str, options: InferenceOptions) -> str:
        bound = self._llm.bind(
            temperature=options.temperature,
            max_tokens=options.max_output_tokens,
            top_p=options.top_p,
        )
        messages = [HumanMessage(content=prompt)]

        start_time = time.time()
        tokens_used = 0
        with get_openai_callback() as cb:
            response = await bound.ainvoke(messages)
            tokens_used = cb.total_tokens
        latency_ms = int((time.time() - start_time) * 1000)

        logger.debug(f"{self.name} call: tokens={tokens_used} latency_ms={latency_ms}")
        return _content_to_text(response)


def _content_to_text(response: Any) -> str:
    content = response.content if hasattr(response, "content") else response
    if isinstance(content, list):
        # Multi-part content: keep the text parts
        parts = []
        for part in content:
            if isinstance(part, dict):
                parts.append(str(part.get("text", "")))
            else:
                parts.append(str(part))
        return "".join(parts)
    return str(content) if content is not None else ""
