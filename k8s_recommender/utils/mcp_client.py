import asyncio
import json
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from langchain_mcp_adapters.client import MultiServerMCPClient
from langchain_core.tools import BaseTool
from k8s_recommender.utils.exceptions import ConfigError, RecommenderError
from k8s_recommender.utils.logger import AgentLogger

mcp_logger = AgentLogger("MCP_CLIENT")


class MCPAdapterClient:
    """
    MCP client using langchain-mcp-adapters for cluster tool access.

    Wraps MultiServerMCPClient so the recommender can call the cluster tool
    server (kubectl_* tools) as plain async functions.
    """

    def __init__(self, host: str = 'localhost', port: str = '8000', transport: str = 'sse'):
        """
        Initialize the MCP adapter client.

        Args:
            host: The hostname of the MCP server (for SSE transport)
            port: The port of the MCP server (for SSE transport)
            transport: The transport type ('sse', 'streamable_http' or 'stdio')
        """
        self.host = host
        self.port = port
        self.transport = transport
        self.client: Optional[MultiServerMCPClient] = None
        self.tools: List[BaseTool] = []
        self._tool_map: Dict[str, BaseTool] = {}
        self._init_lock = asyncio.Lock()

        self.mcp_config = self._build_mcp_config()

    def _build_mcp_config(self) -> Dict[str, Any]:
        """Build MCP server configuration based on transport type."""
        if self.transport == 'sse':
            return {
                "cluster_tools": {
                    "url": f"http://{self.host}:{self.port}/sse",
                    "transport": "sse"
                }
            }
        elif self.transport == 'streamable_http':
            return {
                "cluster_tools": {
                    "url": f"http://{self.host}:{self.port}/mcp",
                    "transport": "streamable_http"
                }
            }
        elif self.transport == 'stdio':
            env = {
                key: value for key, value in {
                    'KUBECONFIG': os.getenv('KUBECONFIG'),
                }.items() if value is not None
            }

            return {
                "cluster_tools": {
                    "command": "uv",
                    "args": ["run", "-m", "cluster_tools_mcp_server"],
                    "transport": "stdio",
                    "env": env if env else None
                }
            }
        else:
            raise ConfigError(
                f"Unsupported transport type: {self.transport}. Must be 'sse', 'streamable_http' or 'stdio'."
            )

    async def initialize(self) -> None:
        """Initialize the MCP client and load tools."""
        self.client = MultiServerMCPClient(self.mcp_config)
        self.tools = await self.client.get_tools()
        self._tool_map = {tool.name: tool for tool in self.tools}
        mcp_logger.log_structured(
            level="INFO",
            message="Loaded cluster MCP tools",
            extra={"tools": sorted(self._tool_map)}
        )

    async def close(self) -> None:
        """Close the MCP client connection."""
        # MultiServerMCPClient opens a session per tool call
        self.client = None

    @asynccontextmanager
    async def session(self):
        """Context manager for MCP client session."""
        await self.initialize()
        try:
            yield self
        finally:
            await self.close()

    def _get_tool(self, tool_name: str) -> Optional[BaseTool]:
        """Get a tool by name from the loaded tools."""
        return self._tool_map.get(tool_name)

    async def call_tool(self, tool_name: str, **kwargs) -> Any:
        """
        Execute a tool with the given arguments.

        JSON string results are decoded; other results are returned as-is.
        """
        if not self._tool_map:
            # Concurrent first calls share one initialization
            async with self._init_lock:
                if not self._tool_map:
                    await self.initialize()
        tool = self._get_tool(tool_name)
        if not tool:
            raise ConfigError(
                f"Tool '{tool_name}' is not available. Ensure the cluster MCP server is running and exposes it."
            )

        try:
            result = await tool.ainvoke(kwargs)
        except Exception as e:
            raise RecommenderError(f"Error executing tool '{tool_name}': {str(e)}")

        if isinstance(result, str):
            try:
                return json.loads(result)
            except json.JSONDecodeError:
                return result
        return result

    def get_available_tools(self) -> List[str]:
        """Get list of available tool names."""
        return list(self._tool_map.keys())
