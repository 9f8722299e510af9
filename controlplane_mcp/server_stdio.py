import asyncio
import logging
import sys

from mcp.server.stdio import stdio_server

from controlplane_mcp.discovery import CatalogueError, build_discovery_server

logging.basicConfig(stream=sys.stderr, level=logging.INFO, format='[%(levelname)s] %(message)s')


async def serve() -> None:
    server = build_discovery_server().get_server()
    async with stdio_server() as (read_stream, write_stream):
        logging.info("[DiscoveryStdio] Serving MCP over stdio")
        await server.run(read_stream, write_stream, server.create_initialization_options())


def main() -> None:
    try:
        asyncio.run(serve())
    except CatalogueError as e:
        logging.error(f"[DiscoveryStdio] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
