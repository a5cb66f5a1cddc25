"""Entry point for running the sidecar from an editor or a terminal.

The editor extension starts this script with the workspace it has open;
everything not given on the command line comes from the environment.
"""
import argparse
import os
import sys
from typing import List, Optional

# Add the app directory to Python path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import Settings  # noqa: E402


def build_settings(argv: Optional[List[str]] = None) -> Settings:
    """Settings from the environment, overridden by command line options."""
    parser = argparse.ArgumentParser(description="Coding agent sidecar")
    parser.add_argument("--workspace", help="Workspace directory the agent operates on")
    parser.add_argument("--host", help="Host to bind to")
    parser.add_argument("--port", type=int, help="Port to listen on")
    parser.add_argument("--mode", help="Initial work mode (architect, code, ask, debug)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    overrides = {}
    if args.workspace:
        overrides["workspace_root"] = args.workspace
    if args.host:
        overrides["host"] = args.host
    if args.port is not None:
        overrides["port"] = args.port
    if args.mode:
        overrides["default_mode"] = args.mode
    if args.debug:
        overrides["debug"] = True
    return Settings(**overrides)


if __name__ == "__main__":
    import uvicorn
    from main import create_app

    settings = build_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level="debug" if settings.debug else "info",
        ws="websockets",
    )
