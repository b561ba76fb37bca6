"""CLI entry point for the Supercar Shop MCP server."""

import argparse
import asyncio
import os


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Supercar Shop MCP Server")
    parser.add_argument(
        "--mode",
        choices=["stdio", "http"],
        default="stdio",
        help="Server mode: stdio (for MCP protocol) or http (for REST API)",
    )
    parser.add_argument(
        "--backend",
        choices=["api", "local"],
        default=None,
        help="Data backend: api (remote REST API) or local (SQLite). Overrides SUPERCAR_SHOP_BACKEND",
    )
    parser.add_argument(
        "--db",
        default=None,
        help="SQLite database path for the local backend. Overrides SUPERCAR_SHOP_DB",
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host to bind to (HTTP mode only, default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to (HTTP mode only, default: 8000)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable hot reloading (HTTP mode only, watches for file changes)",
    )

    args = parser.parse_args()

    # Passed through the environment so reloaded workers see them too
    if args.backend:
        os.environ["SUPERCAR_SHOP_BACKEND"] = args.backend
    if args.db:
        os.environ["SUPERCAR_SHOP_DB"] = args.db

    if args.mode == "http":
        from .http_server import run_http_server
        run_http_server(host=args.host, port=args.port, reload=args.reload)
    else:
        from .server import main as server_main
        asyncio.run(server_main())


if __name__ == "__main__":
    main()
