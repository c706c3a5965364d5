# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/__main__.py
from __future__ import annotations

import logging
import sys
import traceback
from typing import List, Optional

from .cli.commands import COMMANDS
from .cli.parser import build_parser
from .controller.config import ControllerConfig
from .core.exceptions import VmImportError, format_exception_for_cli
from .core.logger import Log


def _print_stderr(msg: str) -> None:
    print(msg, file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    logger: Optional[logging.Logger] = None

    # Phase 1: config and logging
    try:
        config = ControllerConfig.load(args.config).with_overrides(
            store_dir=args.store_dir,
            workers=getattr(args, "workers", None),
            log_file=args.log_file,
            log_json=True if args.json_logs else None,
        )
        logger = Log.setup(args.verbose, config.log_file, quiet=args.quiet, json_logs=config.log_json)
    except VmImportError as e:
        _print_stderr(f"💥 ERROR    {format_exception_for_cli(e, verbose=args.verbose)}")
        raise SystemExit(e.code)

    # Phase 2: command
    try:
        rc = COMMANDS[args.command](args, config, logger)
    except VmImportError as e:
        Log.fail(logger, format_exception_for_cli(e, verbose=args.verbose))
        rc = e.code
    except KeyboardInterrupt:
        logger.warning("Interrupted by user (Ctrl+C).")
        rc = 130
    except Exception as e:
        logger.error(f"💥 UNHANDLED {type(e).__name__}: {e}")
        logger.debug(traceback.format_exc())
        rc = 1

    raise SystemExit(rc)


if __name__ == "__main__":
    main()
