"""Command-line entry point: load config, set up logging, run the dashboard."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from .app import LazyTfApp
from .config import build_accounts, load_config
from .controller import Controller
from .errors import ConfigError
from .state import AppState

LAZYTF_DIR = Path(os.environ.get("LAZYTF_DIR", Path.home() / ".lazytf"))
DEFAULT_LOG_FILE = LAZYTF_DIR / "lazytf.log"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lazytf", description="lazytf - terminal UI for Terraform workflows")
    parser.add_argument("-c", "--config", type=Path, help="Path to lazytf config YAML")
    parser.add_argument("--log-file", type=Path, default=DEFAULT_LOG_FILE, help="Where to write the debug log")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level for the log file (default: INFO)",
    )
    return parser


def setup_logging(log_file: Path, level: str) -> None:
    """Log to a file; the terminal belongs to the UI."""
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=str(log_file),
        level=getattr(logging, level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        setup_logging(args.log_file, args.log_level)
    except OSError as exc:
        print(f"Error: cannot open log file {args.log_file}: {exc}", file=sys.stderr)
        return 1
    logger = logging.getLogger("lazytf")

    try:
        loaded = load_config(Path.cwd(), args.config)
        accounts, startup_lines = build_accounts(loaded.config, loaded.base_dir)
    except ConfigError as exc:
        logger.error("configuration error: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    state = AppState(accounts, output_limit=loaded.config.ui.output_buffer_limit, startup_lines=startup_lines)
    state.push_output(f"Loaded config from {loaded.path}")

    app = LazyTfApp(state, settings=loaded.config.ui, controller=Controller(state))
    logger.info("starting dashboard with %d accounts", len(accounts))
    app.run()
    logger.info("dashboard exited")
    return app.return_code or 0


if __name__ == "__main__":
    sys.exit(main())
