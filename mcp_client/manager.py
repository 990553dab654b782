"""
Multi-Provider Manager

Tool registry across MCP providers: resolves a tool name to its owning
provider and dispatches the call.

DESIGN RULES:
- Partial connection failure is tolerated; failed providers expose no tools
- call_tool keeps no shared per-call state, so concurrent runs may share one manager
- Tenant id is injected from explicit configuration, never read ad hoc from the environment
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from mcp_client.executor import ProviderSession
from mcp_client.registry import (
    ProviderConfig,
    ProviderNotConnectedError,
    RegistryConfig,
    ToolInfo,
    ToolNotFoundError,
)

logger = logging.getLogger(__name__)

SessionFactory = Callable[[ProviderConfig], ProviderSession]


class MultiProviderManager:
    """
    Owns every provider connection and the union tool catalog.

    Lifecycle: register() -> connect_all() -> call_tool() ... -> disconnect_all()
    """

    def __init__(
        self,
        config: Optional[RegistryConfig] = None,
        session_factory: SessionFactory = ProviderSession,
    ):
        self._config = config or RegistryConfig()
        self._session_factory = session_factory
        self._configs: Dict[str, ProviderConfig] = {}
        self._sessions: Dict[str, ProviderSession] = {}
        self._tools: Dict[str, List[ToolInfo]] = {}
        self._lock = asyncio.Lock()
        self._connect_locks: Dict[str, asyncio.Lock] = {}

    @property
    def config(self) -> RegistryConfig:
        return self._config

    def register(self, provider: ProviderConfig) -> None:
        """Add a provider. Re-registering a name overwrites its config."""
        if provider.name in self._configs:
            logger.info(f"Re-registering provider {provider.name}")
            if self.is_connected(provider.name):
                logger.warning(
                    f"Provider {provider.name} is connected; new config applies after it reconnects"
                )
        self._configs[provider.name] = provider
        logger.info(f"Registered provider: {provider.name} ({provider.transport})")

    def registered_providers(self) -> List[str]:
        return list(self._configs.keys())

    async def connect_all(self) -> None:
        """
        Connect every registered, enabled provider concurrently.

        Never raises for individual failures.
        """
        names = [name for name, cfg in self._configs.items() if cfg.enabled]
        results = await asyncio.gather(*(self.connect(name) for name in names), return_exceptions=True)

        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                logger.error(f"Failed to connect to {name}: {result}")

        logger.info(f"Connected providers: {self.connected_providers()} ({len(self.list_all_tools())} tools)")

    async def connect(self, name: str) -> None:
        """Connect one provider and load its tools."""
        config = self._configs.get(name)
        if config is None:
            raise ValueError(f"Provider {name} not registered")

        # Connects to the same provider are serialized
        async with self._connect_locks.setdefault(name, asyncio.Lock()):
            existing = self._sessions.get(name)
            if existing is not None and existing.is_connected:
                logger.info(f"Already connected to {name}")
                return

            session = self._session_factory(config)
            await session.connect()
            try:
                tools = await session.list_tools()
            except Exception:
                await session.disconnect()
                raise

            async with self._lock:
                self._sessions[name] = session
                self._tools[name] = tools
        logger.info(f"Loaded {len(tools)} tools from {name}")

    def list_all_tools(self) -> List[ToolInfo]:
        """Union of tools across connected providers."""
        return [tool for tools in self._tools.values() for tool in tools]

    def list_provider_tools(self, name: str) -> List[ToolInfo]:
        return list(self._tools.get(name, []))

    def connected_providers(self) -> List[str]:
        return [name for name, session in self._sessions.items() if session.is_connected]

    def is_connected(self, name: str) -> bool:
        session = self._sessions.get(name)
        return session.is_connected if session else False

    def _resolve(self, tool_name: str) -> ToolInfo:
        for tools in self._tools.values():
            for tool in tools:
                if tool.name == tool_name:
                    return tool
        raise ToolNotFoundError(tool_name)

    def _with_implicit_params(self, tool: ToolInfo, params: Dict[str, Any]) -> Dict[str, Any]:
        final_params = dict(params or {})
        if tool.provider != self._config.tenant_provider:
            return final_params
        if final_params.get(self._config.tenant_param):
            return final_params

        if self._config.tenant_id:
            final_params[self._config.tenant_param] = self._config.tenant_id
        else:
            logger.warning(
                f"Tenant id not configured; {tool.provider} tool {tool.name} "
                f"called without '{self._config.tenant_param}' and may fail"
            )
        return final_params

    async def call_tool(self, tool_name: str, params: Dict[str, Any]) -> Any:
        """
        Call a tool on the provider that exposes it.

        Raises:
            ToolNotFoundError: no connected provider exposes the tool
            ProviderNotConnectedError: the owning provider dropped its connection
            ToolExecutionError: the provider reported an error
        """
        tool = self._resolve(tool_name)
        session = self._sessions.get(tool.provider)
        if session is None or not session.is_connected:
            raise ProviderNotConnectedError(tool.provider)

        arguments = self._with_implicit_params(tool, params)
        logger.info(f"Calling tool {tool_name} on {tool.provider}")
        return await session.call_tool(tool_name, arguments)

    async def disconnect_all(self) -> None:
        """Tear down every session. Tolerates individual failures."""
        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
            self._tools.clear()

        results = await asyncio.gather(*(s.disconnect() for s in sessions), return_exceptions=True)
        for session, result in zip(sessions, results):
            if isinstance(result, BaseException):
                logger.error(f"Error disconnecting {session.name}: {result}")
