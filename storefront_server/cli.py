"""Command line entry point: run the MCP server on stdio or the HTTP API."""

import argparse
import asyncio
import logging
import os
from typing import Optional, Sequence


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storefront-server",
        description="Storefront cart, wishlist and RFQ server",
    )
    parser.add_argument(
        "--mode",
        choices=["stdio", "http"],
        default="stdio",
        help="stdio serves MCP tools, http serves the REST API (default: stdio)",
    )
    parser.add_argument("--host", default="0.0.0.0", help="HTTP bind address (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8000, help="HTTP port (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="HTTP only: restart on source changes")
    parser.add_argument("--api-url", help="Storefront API root, overrides STOREFRONT_API_URL")
    parser.add_argument("--state-dir", help="Directory for cart/wishlist/RFQ files, overrides STOREFRONT_STATE_DIR")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    # Settings are read from the environment by both servers (and by uvicorn's reloader child)
    if args.api_url:
        os.environ["STOREFRONT_API_URL"] = args.api_url
    if args.state_dir:
        os.environ["STOREFRONT_STATE_DIR"] = args.state_dir

    if args.mode == "http":
        from .http_server import run_http_server
        logging.getLogger().setLevel(args.log_level)
        run_http_server(host=args.host, port=args.port, reload=args.reload)
    else:
        from .server import main as server_main
        logging.getLogger().setLevel(args.log_level)
        asyncio.run(server_main())


if __name__ == "__main__":
    main()
