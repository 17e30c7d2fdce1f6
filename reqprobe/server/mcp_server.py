"""
Model Context Protocol front end over stdio.
"""

import logging
from typing import Any, Dict, List, Optional

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from .. import __version__
from ..utils.config import Config
from .tools import SendRequestsTool

SERVER_NAME = "reqprobe"
SERVER_INSTRUCTIONS = "Send HTTP requests and return response metadata."

logger = logging.getLogger(__name__)


def create_server(config: Config, tool: Optional[SendRequestsTool] = None) -> Server:
    """Build the server and register the ``send_requests`` tool."""
    tool = tool or SendRequestsTool(config)
    server = Server(SERVER_NAME, version=__version__, instructions=SERVER_INSTRUCTIONS)

    @server.list_tools()
    async def list_tools() -> List[types.Tool]:
        return [
            types.Tool(
                name=tool.name,
                title=tool.title,
                description=tool.description,
                inputSchema=tool.input_schema,
            )
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: Optional[Dict[str, Any]]) -> List[types.TextContent]:
        if name != tool.name:
            raise ValueError(f"Unknown tool: {name}")
        text = await tool(arguments)
        return [types.TextContent(type="text", text=text)]

    return server


async def run_mcp_server(config: Config):
    """Serve until the client closes stdin."""
    server = create_server(config)
    logger.info(f"MCP server '{SERVER_NAME}' listening on stdio")
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())
