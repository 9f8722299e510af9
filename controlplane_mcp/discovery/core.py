"""MCP server serving the discovery meta-tools.

Handles the protocol side only (list_tools, call_tool) and delegates the
work to a ``MetaToolManager``.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from google.adk.tools.mcp_tool.conversion_utils import adk_to_mcp_tool_type
from mcp import types as mcp_types
from mcp.server.lowlevel import Server

from ..utils.config import env_str
from .catalogue import load_catalogue
from .engine import DiscoveryEngine
from .meta_tools import MetaToolManager

DEFAULT_CATALOGUE_PATH = Path(__file__).resolve().parent.parent / "data" / "catalogue.json"


def format_tool_result(result) -> str:
    if not isinstance(result, dict):
        return str(result)
    message = result.get("message") or ("Success" if result.get("success") else "Unknown error occurred")
    data = result.get("data")
    if data:
        return f"{message}\n\nResponse Data:\n{json.dumps(data, indent=2, default=str)}"
    return message


class DiscoveryMCPServer:
    """MCP server exposing the meta-tools of a MetaToolManager

    Args:
        server_name: Name for the MCP server instance
        tool_manager: MetaToolManager providing the tools
    """

    def __init__(self, tool_manager: MetaToolManager, server_name: str = "controlplane-mcp"):
        self.server_name = server_name
        self.server = Server(server_name)
        self.tool_manager = tool_manager
        self._setup_server()
        logging.info(f"[DiscoveryMCP] Initialized MCP server '{server_name}'")

    def _setup_server(self) -> None:
        @self.server.list_tools()
        async def list_tools():
            tool_list = []
            for tool in self.tool_manager.tools.values():
                try:
                    tool_list.append(adk_to_mcp_tool_type(tool))
                except Exception as e:
                    logging.error(f"[DiscoveryMCP] Error converting tool {tool.name} to MCP type: {e}")
            logging.info(f"[DiscoveryMCP] Returning {len(tool_list)} tools to MCP client")
            return tool_list

        @self.server.call_tool()
        async def call_tool(name: str, arguments: dict):
            logging.info(f"[DiscoveryMCP] Tool call: {name} with args: {json.dumps(arguments, default=str)}")
            try:
                tool = self.tool_manager.tools.get(name)
                if tool is None:
                    logging.warning(f"[DiscoveryMCP] Tool '{name}' not found")
                    return [mcp_types.TextContent(type="text", text=f"Tool '{name}' not found")]

                result = await tool.run_async(args=arguments, tool_context=None)
                return [mcp_types.TextContent(type="text", text=format_tool_result(result))]

            except Exception as e:
                logging.exception(f"[DiscoveryMCP] Error executing tool '{name}': {e}")
                return [mcp_types.TextContent(type="text", text=f"Error executing tool: {str(e)}")]

    def get_server(self) -> Server:
        return self.server


def build_discovery_server(catalogue_path: Optional[Union[str, Path]] = None) -> DiscoveryMCPServer:
    """Load the catalogue and wire engine, meta-tools and MCP server from the environment

    Raises:
        CatalogueError: If the catalogue cannot be loaded
    """
    path = catalogue_path or env_str("CATALOGUE_PATH") or DEFAULT_CATALOGUE_PATH
    engine = DiscoveryEngine.from_env(load_catalogue(path))
    mode = "execution" if engine.credentials.configured else "documentation"
    logging.info(f"[DiscoveryMCP] {len(engine.catalogue)} operations available, {mode} mode")
    return DiscoveryMCPServer(MetaToolManager(engine))


__all__ = [
    "DEFAULT_CATALOGUE_PATH",
    "DiscoveryMCPServer",
    "build_discovery_server",
    "format_tool_result",
]
