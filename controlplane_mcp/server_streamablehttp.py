import contextlib
import logging
import os
import sys
from collections.abc import AsyncIterator

from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route
from starlette.types import Receive, Scope, Send

from controlplane_mcp.discovery import CatalogueError, build_discovery_server

logging.basicConfig(stream=sys.stderr, level=logging.INFO, format='[%(levelname)s] %(message)s')


def main() -> None:
    """Start the discovery MCP server over streamable HTTP"""
    port = int(os.getenv("PORT", 8080))
    host = os.getenv("HOST", "0.0.0.0")

    try:
        discovery_server = build_discovery_server()
    except CatalogueError as e:
        logging.error(f"[DiscoveryHTTP] {e}")
        sys.exit(1)

    engine = discovery_server.tool_manager.engine
    session_manager = StreamableHTTPSessionManager(
        app=discovery_server.get_server(),
        event_store=None,
        json_response=True,
        stateless=True,
    )

    async def handle_streamable_http(scope: Scope, receive: Receive, send: Send) -> None:
        await session_manager.handle_request(scope, receive, send)

    async def health_handler(request: Request) -> JSONResponse:
        return JSONResponse({
            "status": "healthy",
            "server": discovery_server.server_name,
            "operations_count": len(engine.catalogue),
            "tools_count": len(discovery_server.tool_manager.tools),
            "authentication_mode": engine.credentials.auth_mode,
        })

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        async with session_manager.run():
            logging.info(f"[DiscoveryHTTP] Control plane MCP server started on {host}:{port}")
            logging.info(f"[DiscoveryHTTP]   - POST http://{host}:{port}/ (MCP protocol)")
            logging.info(f"[DiscoveryHTTP]   - GET http://{host}:{port}/health (Health check)")
            logging.info(f"[DiscoveryHTTP]   - Tools: {list(discovery_server.tool_manager.tools)}")
            try:
                yield
            finally:
                logging.info("[DiscoveryHTTP] Control plane MCP server shutting down...")

    starlette_app = Starlette(
        routes=[
            Route("/health", health_handler, methods=["GET"]),
            Mount("/", app=handle_streamable_http),
        ],
        lifespan=lifespan,
    )

    import uvicorn
    uvicorn.run(starlette_app, host=host, port=port)


if __name__ == "__main__":
    main()
