#!/usr/bin/env python3
"""
API server entrypoint - loads .env, reports configuration issues and starts uvicorn.
"""

import argparse
import sys
from pathlib import Path

# Load environment variables from .env file first
import dotenv
dotenv.load_dotenv()

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))


def main():
    parser = argparse.ArgumentParser(description="Run the CareerMe API server")
    parser.add_argument("--host", default="127.0.0.1", help="Interface to bind (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port to listen on (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    parser.add_argument("--check", action="store_true", help="Only validate configuration and exit")
    args = parser.parse_args()

    from careerme.core.config import debug_enabled, get_source_env, has_store_config, validate_config

    issues = validate_config()
    for issue in issues:
        print(f"⚠️  {issue}")

    if args.check:
        return 1 if issues else 0

    if not has_store_config():
        print("ℹ️  Record store is not configured; using the in-memory store.")
    print(f"🚀 Starting CareerMe API on http://{args.host}:{args.port} (env={get_source_env()})")

    import uvicorn
    uvicorn.run(
        "careerme.api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="debug" if debug_enabled() else "info",
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
