"""
Provider Registry Definitions

Provider configuration, tool descriptors and the error family raised at
the tool invocation boundary. Provider lists are loaded from YAML.

Example providers file:

    providers:
      - name: atlassian
        transport: sse
        url: https://mcp.atlassian.com/v1/sse
      - name: postgres
        command: npx
        args: ["-y", "@modelcontextprotocol/server-postgres", "postgresql://localhost/db"]
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, model_validator


# --- Errors ---

class ToolInvocationError(Exception):
    """Base error for tool calls; the message is user readable."""


class ToolNotFoundError(ToolInvocationError):
    def __init__(self, tool_name: str):
        super().__init__(f"Tool {tool_name} not found in any provider")
        self.tool_name = tool_name


class ProviderNotConnectedError(ToolInvocationError):
    def __init__(self, provider: str):
        super().__init__(f"Provider {provider} not connected")
        self.provider = provider


class ToolExecutionError(ToolInvocationError):
    """The provider ran the tool and reported an error."""


# --- Models ---

class ProviderConfig(BaseModel):
    """
    How to reach one tool provider.

    stdio providers are launched as subprocesses; sse providers are remote.
    """
    name: str = Field(..., min_length=1)
    transport: Literal["stdio", "sse"] = "stdio"
    command: Optional[str] = None
    args: List[str] = Field(default_factory=list)
    cwd: Optional[str] = None
    env: Optional[Dict[str, str]] = None
    url: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    enabled: bool = True

    @model_validator(mode="after")
    def _check_transport(self) -> "ProviderConfig":
        if self.transport == "stdio" and not self.command:
            raise ValueError(f"Provider {self.name}: stdio transport requires 'command'")
        if self.transport == "sse" and not self.url:
            raise ValueError(f"Provider {self.name}: sse transport requires 'url'")
        return self

    def resolved_cwd(self) -> Optional[str]:
        """Working directory with relative paths resolved against the process cwd."""
        if not self.cwd:
            return None
        if os.path.isabs(self.cwd):
            return self.cwd
        return os.path.abspath(os.path.join(os.getcwd(), self.cwd))


class ToolInfo(BaseModel):
    """Tool descriptor tagged with its owning provider."""
    name: str
    description: str = "No description available"
    provider: str
    input_schema: Dict[str, Any] = Field(default_factory=dict)


class RegistryConfig(BaseModel):
    """
    Implicit parameter injection for the tenant-scoped provider.

    When a call resolves to `tenant_provider` and lacks `tenant_param`,
    `tenant_id` is added to the arguments.
    """
    tenant_provider: str = "atlassian"
    tenant_param: str = "cloudId"
    tenant_id: Optional[str] = None


def load_provider_configs(path: str) -> List[ProviderConfig]:
    """
    Load provider configurations from a YAML file.

    Args:
        path: File with a top-level `providers` list

    Returns:
        Parsed provider configs, in file order
    """
    with open(Path(path), "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    entries = data.get("providers", [])
    if not isinstance(entries, list):
        raise ValueError(f"{path}: 'providers' must be a list")
    return [ProviderConfig(**entry) for entry in entries]
