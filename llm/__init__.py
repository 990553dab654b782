# LLM Package
from llm.base import InferenceClient, InferenceError, InferenceOptions

__all__ = ["InferenceClient", "InferenceError", "InferenceOptions"]
