# MCP Client Package
from mcp_client.manager import MultiProviderManager
from mcp_client.registry import (
    ProviderConfig,
    RegistryConfig,
    ToolInfo,
    ToolInvocationError,
    ToolNotFoundError,
    ProviderNotConnectedError,
    ToolExecutionError,
    load_provider_configs,
)

__all__ = [
    "MultiProviderManager",
    "ProviderConfig",
    "RegistryConfig",
    "ToolInfo",
    "ToolInvocationError",
    "ToolNotFoundError",
    "ProviderNotConnectedError",
    "ToolExecutionError",
    "load_provider_configs",
]
