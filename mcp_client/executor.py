"""
Provider Session

One MCP client session to one provider.

The transport and session contexts are entered and exited by a single
background task; MCP transports use task-scoped cancel scopes, so they must
close in the task that opened them.
"""

import asyncio
import json
import logging
from contextlib import AsyncExitStack
from typing import Any, Dict, List, Optional

from mcp import ClientSession, StdioServerParameters
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client

from mcp_client.registry import ProviderConfig, ToolExecutionError, ToolInfo, ProviderNotConnectedError

logger = logging.getLogger(__name__)


class ProviderSession:
    """
    Connection to a single tool provider.

    Lifecycle: connect() -> list_tools()/call_tool() -> disconnect()
    """

    CONNECT_TIMEOUT_SECONDS = 30

    def __init__(self, config: ProviderConfig):
        self.config = config
        self._session: Optional[ClientSession] = None
        self._runner: Optional[asyncio.Task] = None
        self._ready = asyncio.Event()
        self._closing = asyncio.Event()
        self._startup_error: Optional[BaseException] = None

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def is_connected(self) -> bool:
        return self._session is not None and self._runner is not None and not self._runner.done()

    async def connect(self) -> None:
        """Open the transport and initialize the MCP session."""
        if self.is_connected:
            logger.info(f"Already connected to {self.name}")
            return

        self._ready.clear()
        self._closing.clear()
        self._startup_error = None
        self._runner = asyncio.create_task(self._run(), name=f"mcp-provider-{self.name}")

        try:
            await asyncio.wait_for(self._ready.wait(), timeout=self.CONNECT_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            await self.disconnect()
            raise ConnectionError(f"Timed out connecting to {self.name}")

        if self._startup_error is not None or self._session is None:
            error = self._startup_error
            await self.disconnect()
            raise ConnectionError(f"Failed to connect to {self.name}: {error or 'session closed during startup'}") from error

        logger.info(f"Connected to provider {self.name} ({self.config.transport})")

    def _open_transport(self):
        if self.config.transport == "sse":
            return sse_client(self.config.url, headers=self.config.headers or None)
        params = StdioServerParameters(
            command=self.config.command,
            args=self.config.args,
            env=self.config.env,
            cwd=self.config.resolved_cwd(),
        )
        return stdio_client(params)

    async def _run(self) -> None:
        try:
            async with AsyncExitStack() as stack:
                read, write = await stack.enter_async_context(self._open_transport())
                session = await stack.enter_async_context(ClientSession(read, write))
                await session.initialize()
                self._session = session
                self._ready.set()
                await self._closing.wait()
        except Exception as e:
            if not self._ready.is_set():
                self._startup_error = e
            else:
                logger.error(f"Provider {self.name} session ended with error: {e}")
        finally:
            self._session = None
            self._ready.set()

    async def disconnect(self) -> None:
        """Close the session. Never raises."""
        runner = self._runner
        if runner is None:
            return
        self._closing.set()
        try:
            await asyncio.wait_for(runner, timeout=self.CONNECT_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            runner.cancel()
            logger.warning(f"Provider {self.name} did not close in time; cancelled")
        except Exception as e:
            logger.error(f"Error during disconnect from {self.name}: {e}")
        finally:
            self._runner = None
            self._session = None
        logger.info(f"Disconnected from provider {self.name}")

    def _require_session(self) -> ClientSession:
        if not self.is_connected or self._session is None:
            raise ProviderNotConnectedError(self.name)
        return self._session

    async def list_tools(self) -> List[ToolInfo]:
        session = self._require_session()
        response = await session.list_tools()
        return [
            ToolInfo(
                name=tool.name,
                description=tool.description or "No description available",
                provider=self.name,
                input_schema=tool.inputSchema or {},
            )
            for tool in response.tools
        ]

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> Any:
        """
        Call a tool and decode its payload.

        Returns:
            JSON-decoded text content, the raw text when it is not JSON,
            or structured content when no text is present.

        Raises:
            ToolExecutionError: if the provider reports an error
        """
        session = self._require_session()
        response = await session.call_tool(tool_name, arguments)

        text = _first_text(response.content)
        if getattr(response, "isError", False):
            raise ToolExecutionError(f"Tool {tool_name} on {self.name} failed: {text or 'unknown error'}")

        if text is not None:
            try:
                return json.loads(text)
            except ValueError:
                return text

        structured = getattr(response, "structuredContent", None)
        if structured is not None:
            return structured
        return [item.model_dump() for item in response.content]


def _first_text(content: List[Any]) -> Optional[str]:
    if not content:
        return None
    first = content[0]
    if getattr(first, "type", None) == "text":
        return first.text
    return None
