from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from PySide6.QtWidgets import QApplication

from dotpiano.app_controller import PianoAppController
from dotpiano.core.activity_log import configure_logging
from dotpiano.core.config import APP_NAME, APP_VERSION, DEFAULT_TIER_OVERLAP
from dotpiano.core.settings_store import JsonFileStore

logger = logging.getLogger("dotpiano.launcher")


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=APP_NAME, description="Multi-tier on-screen piano keyboard.")
    parser.add_argument("--version", action="version", version=f"{APP_NAME} {APP_VERSION}")
    parser.add_argument("--settings", type=Path, default=None, help="settings JSON file")
    parser.add_argument("--soundfont", type=Path, default=None, help="SoundFont (.sf2) to play through")
    parser.add_argument("--log-file", type=Path, default=None, help="write logs to this file as well")
    parser.add_argument("--verbose", action="store_true", help="log debug output to the console")
    parser.add_argument(
        "--no-start-overlay",
        action="store_true",
        help="start with the keyboard already unlocked",
    )
    parser.add_argument(
        "--tier-overlap",
        choices=("shared", "trim"),
        default=DEFAULT_TIER_OVERLAP,
        help="how overlapping desktop tiers share notes",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(verbose=args.verbose, log_file=args.log_file)
    logger.debug("Starting %s %s", APP_NAME, APP_VERSION)

    app = QApplication(sys.argv[:1])
    app.setApplicationName(APP_NAME)
    app.setApplicationDisplayName(APP_NAME)
    app.setOrganizationName(APP_NAME)

    controller = PianoAppController(
        app,
        store=JsonFileStore(args.settings),
        soundfont_path=args.soundfont,
        overlap=args.tier_overlap,
        show_start_overlay=not args.no_start_overlay,
    )
    controller.run()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
