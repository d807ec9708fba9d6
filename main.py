#!/usr/bin/env python3
"""
APISIX manager API - admin HTTP server with OIDC browser login.
"""

import argparse
import logging
import sys

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Serve the admin API with OIDC browser login",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve with OIDC configured from the environment
  OIDC_ENABLED=1 OIDC_DISCOVERY_URL=... AUTH_SECRET=... python main.py --serve

  # Bind a different port
  python main.py --serve --port 9001
        """,
    )
    parser.add_argument("--serve", action="store_true", help="Run the admin API HTTP server")
    parser.add_argument("--host", default="0.0.0.0", help="Server bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=9000, help="Server listen port (default: 9000)")

    args = parser.parse_args()

    if args.serve:
        from manager_api.api.server import run

        run(host=args.host, port=args.port)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
