"""MCP (Model Context Protocol) server for manualtree.

Exposes manual, section tree and policy operations to AI agents over
JSON-RPC 2.0 on stdio, using the mcp library.
"""

import asyncio
import logging

from mcp import McpError
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions
from mcp.server.stdio import stdio_server
from mcp.types import ErrorData, TextContent, Tool

from manualtree import __version__
from manualtree.config import configure_logging
from manualtree.mcp.tool_handlers import INTERNAL_ERROR, call_tool_handler
from manualtree.mcp.tool_schemas import get_tool_schemas
from manualtree.storage.database import get_db

logger = logging.getLogger(__name__)

app = Server("manualtree")


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List all available MCP tools."""
    return [Tool(**schema) for schema in get_tool_schemas().values()]


@app.call_tool()
async def call_tool(name: str, arguments: dict | None) -> list[TextContent]:
    """Handle tool calls."""
    if arguments is None:
        arguments = {}

    db = get_db()

    try:
        # Handlers manage their own database sessions
        return await call_tool_handler(name, arguments, db)
    except McpError:
        raise
    except Exception as e:
        logger.exception("Unexpected error handling tool %s", name)
        raise McpError(ErrorData(code=INTERNAL_ERROR, message=f"Internal error: {str(e)}")) from e


async def main():
    """Main entry point for MCP server."""
    db = get_db()
    db.create_tables()
    async with stdio_server() as (read_stream, write_stream):
        await app.run(
            read_stream,
            write_stream,
            InitializationOptions(
                server_name="manualtree",
                server_version=__version__,
                capabilities=app.get_capabilities(
                    notification_options=NotificationOptions(), experimental_capabilities={}
                ),
            ),
        )


def run():
    """Console script entry point."""
    configure_logging()
    asyncio.run(main())


if __name__ == "__main__":
    run()
