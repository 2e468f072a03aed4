"""
Planning Copilot command line
=============================

Usage:
  planning-copilot serve --project-dir . --host 127.0.0.1 --port 8080
  planning-copilot init --project-dir .

Optional:
  --provider scripted      # deterministic replies, no provider credentials
  --log-level debug
"""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Optional, Sequence

from .runtime.storage.bootstrap import ensure_state_root
from .settings import PROVIDER_ENV_VAR

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="planning-copilot",
        description="Planning Copilot - planning conversations, board cards, and reviewed documents",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="info",
        choices=("debug", "info", "warning", "error"),
        help="Logging level (default: info)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the HTTP API")
    serve.add_argument(
        "--project-dir",
        type=Path,
        default=Path("."),
        help="Directory holding .planning_copilot state (default: current directory)",
    )
    serve.add_argument("--host", type=str, default=DEFAULT_HOST, help=f"Bind address (default: {DEFAULT_HOST})")
    serve.add_argument("--port", type=int, default=DEFAULT_PORT, help=f"Bind port (default: {DEFAULT_PORT})")
    serve.add_argument(
        "--provider",
        type=str,
        default=None,
        choices=("openai", "scripted"),
        help="Override the completion provider from config.yaml",
    )
    serve.add_argument("--no-cors", action="store_true", help="Disable permissive CORS middleware")

    init = commands.add_parser("init", help="Create the state directory and default config")
    init.add_argument(
        "--project-dir",
        type=Path,
        default=Path("."),
        help="Project directory (default: current directory)",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "init":
        root = ensure_state_root(args.project_dir.resolve())
        print(f"Initialized {root}")
        return

    import uvicorn

    from .server.api import create_app

    if args.provider:
        os.environ[PROVIDER_ENV_VAR] = args.provider
    app = create_app(project_dir=args.project_dir.resolve(), enable_cors=not args.no_cors)
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level)


if __name__ == "__main__":
    main()
