#!/usr/bin/env python3
"""
Imagify - HTTP Server Launcher

Runs the search API and the Openverse proxy over HTTP.

Usage:
    python run_server.py
    python run_server.py --host 0.0.0.0 --port 8765

Environment:
    IMAGIFY_HOST / IMAGIFY_PORT set the bind address.
    IMAGIFY_UNSPLASH_ACCESS_KEY / IMAGIFY_PEXELS_API_KEY enable the keyed sources.
"""

import argparse
import logging
import os

from imagify.api.server import DEFAULT_API_PORT, run_api_server

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Run the Imagify image search API")
    parser.add_argument(
        "--host",
        default=os.environ.get("IMAGIFY_HOST", "0.0.0.0"),
        help="Server host (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("IMAGIFY_PORT", str(DEFAULT_API_PORT))),
        help=f"Server port (default: {DEFAULT_API_PORT})",
    )
    args = parser.parse_args()

    logger.info("Creating Imagify API server...")
    logger.info(f"  Unsplash: {'Set' if os.environ.get('IMAGIFY_UNSPLASH_ACCESS_KEY') else 'Not set'}")
    logger.info(f"  Pexels: {'Set' if os.environ.get('IMAGIFY_PEXELS_API_KEY') else 'Not set'}")
    logger.info(f"  Search endpoint: http://{args.host}:{args.port}/api/search?q=...")
    logger.info(f"  Openverse proxy: http://{args.host}:{args.port}/api/openverse?q=...")

    run_api_server(host=args.host, port=args.port)


if __name__ == "__main__":
    main()
