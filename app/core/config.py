import os
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Provider subprocesses inherit the process environment, so .env values
# must land in os.environ too, not only in Settings.
load_dotenv()


class Settings(BaseSettings):
    """
    Application configuration settings.
    """
    model_config = SettingsConfigDict(env_prefix="SMART_AGENT_", env_file=".env", extra="ignore", populate_by_name=True)

    # Service Info
    service_name: str = "smart-query-agent"
    environment: str = "local"
    log_level: str = "INFO"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # LLM
    llm_provider: Literal["langchain", "azure_openai"] = "langchain"
    azure_openai_api_key: str = "placeholder-key"
    azure_openai_endpoint: str = "https://placeholder.openai.azure.com"
    azure_openai_api_version: str = "2024-02-15-preview"
    azure_openai_deployment_name: str = "gpt-4"

    # Knowledge retrieval (Azure AI Search)
    knowledge_enabled: bool = False
    azure_search_endpoint: Optional[str] = None
    azure_search_api_key: Optional[str] = None
    azure_search_index: str = "documents"
    knowledge_top_k: int = 5

    # Tool providers
    providers_file: Optional[str] = None
    tenant_provider: str = "atlassian"
    tenant_param: str = "cloudId"
    tenant_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SMART_AGENT_TENANT_ID", "ATLASSIAN_CLOUD_ID"),
    )

    # Agent loop limits
    max_steps: int = 8
    max_consecutive_failures: int = 3
    max_similar_steps: int = 2
    min_confidence_for_continue: float = 0.7

    # Tracing
    trace_enabled: bool = True
    trace_format: Literal["console", "json"] = "console"

    # Paths
    base_dir: str = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    prompts_dir: str = os.path.join(base_dir, "prompts")


settings = Settings()
