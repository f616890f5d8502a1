#!/usr/bin/env python
"""
Run the Hemera access API server.

Usage:
    python run_api.py
    python run_api.py --reload  # Development mode
    python run_api.py --check   # Validate configuration and exit
"""

import argparse
import json
import sys

import uvicorn

from shared.config import get_settings
from shared.exceptions import ConfigurationError


def check_config(settings) -> int:
    """Print the configuration summary and any problems; non-zero when unusable."""
    print(json.dumps(settings.summary(), indent=2))
    errors = settings.validate_config()
    for error in errors:
        print(f"error: {error}", file=sys.stderr)
    return 1 if errors else 0


def main():
    parser = argparse.ArgumentParser(description="Run Hemera access API server")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    parser.add_argument("--host", type=str, help="Host to bind to")
    parser.add_argument("--port", type=int, help="Port to bind to")
    parser.add_argument("--check", action="store_true", help="Validate configuration and exit")
    args = parser.parse_args()

    settings = get_settings()
    if args.check:
        sys.exit(check_config(settings))

    try:
        settings.require_valid()
    except ConfigurationError as e:
        for error in e.errors:
            print(f"error: {error}", file=sys.stderr)
        sys.exit(1)

    uvicorn.run(
        "api:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload or settings.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
