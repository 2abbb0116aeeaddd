"""HTTP API for the manualtree MCP service using Server-Sent Events (SSE)."""

import asyncio
import json
import logging
from typing import Any, Dict

from fastapi import Body, FastAPI
from fastapi.responses import StreamingResponse
from mcp import McpError

from manualtree import __version__
from manualtree.config import configure_logging
from manualtree.mcp.tool_handlers import INTERNAL_ERROR, METHOD_NOT_FOUND, call_tool_handler
from manualtree.mcp.tool_schemas import get_tool_schemas
from manualtree.storage.database import get_db

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"

app = FastAPI(
    title="manualtree MCP Service",
    description="Numbered section trees for policy manuals",
    version=__version__,
)


def _tools_payload() -> list[dict[str, Any]]:
    return [
        {
            "name": tool_def["name"],
            "description": tool_def["description"],
            "inputSchema": tool_def["inputSchema"],
        }
        for tool_def in get_tool_schemas().values()
    ]


def _error(jsonrpc: str, request_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {"jsonrpc": jsonrpc, "id": request_id, "error": {"code": code, "message": message}}


async def handle_jsonrpc_request(request: Dict[str, Any]) -> Dict[str, Any]:
    """Handle JSON-RPC 2.0 request."""
    jsonrpc = request.get("jsonrpc", "2.0")
    request_id = request.get("id")
    method = request.get("method")
    params = request.get("params") or {}

    if method == "initialize":
        return {
            "jsonrpc": jsonrpc,
            "id": request_id,
            "result": {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "serverInfo": {"name": "manualtree", "version": __version__},
            },
        }
    elif method == "tools/list":
        return {"jsonrpc": jsonrpc, "id": request_id, "result": {"tools": _tools_payload()}}
    elif method == "tools/call":
        tool_name = params.get("name")
        arguments = params.get("arguments") or {}

        try:
            result = await call_tool_handler(tool_name, arguments, get_db())
        except McpError as e:
            # Domain failures keep the code chosen by the tool layer
            return _error(jsonrpc, request_id, e.error.code, e.error.message)
        except Exception as e:
            logger.exception("Error handling tool %s", tool_name)
            return _error(jsonrpc, request_id, INTERNAL_ERROR, f"Internal error: {str(e)}")

        return {
            "jsonrpc": jsonrpc,
            "id": request_id,
            "result": {"content": [{"type": "text", "text": item.text} for item in result]},
        }
    elif method == "prompts/list":
        return {"jsonrpc": jsonrpc, "id": request_id, "result": {"prompts": []}}
    elif method == "resources/list":
        return {"jsonrpc": jsonrpc, "id": request_id, "result": {"resources": []}}
    else:
        return _error(jsonrpc, request_id, METHOD_NOT_FOUND, f"Method not found: {method}")


@app.on_event("startup")
async def startup() -> None:
    configure_logging()
    get_db().create_tables()


@app.post("/mcp/sse")
async def mcp_sse_post(request: dict = Body(...)):
    """Server-Sent Events endpoint for MCP (POST)."""
    result = await handle_jsonrpc_request(request)
    return StreamingResponse(content=f"data: {json.dumps(result)}\n\n", media_type="text/event-stream")


@app.get("/mcp/sse")
async def mcp_sse_get():
    """Server-Sent Events endpoint for MCP (GET).

    Sends the discovery events (initialize, tools/list, prompts/list,
    resources/list) and then keeps the connection open with keepalives.
    """

    async def generate_sse_stream():
        discovery = ["initialize", "tools/list", "prompts/list", "resources/list"]
        for request_id, method in enumerate(discovery, start=1):
            response = await handle_jsonrpc_request(
                {"jsonrpc": "2.0", "id": request_id, "method": method, "params": {}}
            )
            yield f"data: {json.dumps(response)}\n\n"
            await asyncio.sleep(0.1)
        logger.info("MCP SSE GET: sent %d tools", len(get_tool_schemas()))

        try:
            while True:
                await asyncio.sleep(30)
                yield ": keepalive\n\n"
        except asyncio.CancelledError:
            logger.info("MCP SSE GET: connection closed by client")
            raise

    return StreamingResponse(
        generate_sse_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@app.get("/health")
async def health_check():
    """Health check endpoint; reports whether the database answers."""
    database_ok = get_db().ping()
    return {
        "status": "healthy" if database_ok else "degraded",
        "service": "manualtree",
        "database": "ok" if database_ok else "unreachable",
    }


def run():
    """Console script entry point."""
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8005)


if __name__ == "__main__":
    run()
