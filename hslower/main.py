#!/usr/bin/env python3
"""hslower/main.py: CLI entry-point.

Usage examples
--------------
    # Parse an emitted program and print a summary
    python -m hslower check program.hs

    # Evaluate an emitted program with the reference evaluator
    python -m hslower run program.hs --input input.txt

    # Show version and exit
    python -m hslower --version

Exit codes
----------
    0   Success.
    1   The program is malformed or faulted during evaluation.
    2   Infrastructure failure (bad file, bad arguments, etc.).

The module doubles as ``python -m hslower`` via the companion
``hslower/__main__.py`` which simply calls :func:`main`.
"""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap
import time
from pathlib import Path
from typing import Optional, Sequence

from hslower import __version__
from hslower.config import LoweringConfig
from hslower.errors import ConfigError, EvaluatorError

_log = logging.getLogger("hslower")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the root ``hslower`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("hslower")
    root.setLevel(level)
    # main() may run several times in one process; keep a single handler.
    root.handlers[:] = [handler]


def _resolve_path(raw: str, label: str = "file") -> Path:
    """Resolve *raw* to an absolute ``Path``, raising on missing files."""
    p = Path(raw).expanduser().resolve()
    if not p.exists():
        _log.error("%s not found: %s", label, p)
        raise SystemExit(EXIT_INFRA)
    return p


def _read_input(raw: Optional[str]) -> bytes:
    """Program input: a file, ``-`` for stdin, or nothing."""
    if raw is None:
        return b""
    if raw == "-":
        return sys.stdin.buffer.read()
    return _resolve_path(raw, "input file").read_bytes()


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------

def cmd_check(args: argparse.Namespace) -> int:
    """Parse an emitted program and report its shape."""
    from hslower.evaluator import parse_program

    path = _resolve_path(args.program, "program")
    try:
        program = parse_program(path.read_text(encoding="utf-8"))
    except EvaluatorError as exc:
        _log.error("%s: %s", path, exc)
        return EXIT_ERROR
    print(f"{path.name}: {program.summary()}")
    return EXIT_OK


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------

def cmd_run(args: argparse.Namespace) -> int:
    """Evaluate an emitted program, copying its output to stdout."""
    from hslower.evaluator import evaluate

    path = _resolve_path(args.program, "program")
    config_kwargs = {}
    if args.max_steps is not None:
        config_kwargs["max_steps"] = args.max_steps
    try:
        config = LoweringConfig(**config_kwargs).check()
    except ConfigError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA

    stdin = _read_input(args.input)
    t0 = time.monotonic()
    try:
        result = evaluate(path.read_text(encoding="utf-8"), stdin=stdin, config=config)
    except EvaluatorError as exc:
        _log.error("%s: %s", path, exc)
        return EXIT_ERROR
    elapsed = time.monotonic() - t0
    _log.info("Evaluation finished at pc=%d after %d steps in %.3fs", result.pc, result.steps, elapsed)

    sys.stdout.buffer.write(result.output)
    sys.stdout.flush()
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    """Construct the full CLI argument parser with subcommands."""

    parser = argparse.ArgumentParser(
        prog="hslower",
        description=(
            "hslower: register-machine IR to Haskell lowering.\n\n"
            "Inspects and evaluates Haskell programs emitted by the backend."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              hslower check program.hs
              hslower run program.hs --input input.txt
        """),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    # --- check -------------------------------------------------------------
    p_check = subparsers.add_parser(
        "check",
        help="Parse an emitted program and print a summary.",
    )
    p_check.add_argument("program", help="Path to an emitted .hs program.")
    p_check.set_defaults(func=cmd_check)

    # --- run ---------------------------------------------------------------
    p_run = subparsers.add_parser(
        "run",
        help="Evaluate an emitted program with the reference evaluator.",
    )
    p_run.add_argument("program", help="Path to an emitted .hs program.")
    p_run.add_argument(
        "-i", "--input",
        default=None,
        metavar="FILE",
        help='Program input ("-" for stdin; default: empty).',
    )
    p_run.add_argument(
        "--max-steps",
        type=int,
        default=None,
        metavar="N",
        help="Evaluation step budget (default: from LoweringConfig).",
    )
    p_run.set_defaults(func=cmd_run)

    return parser


# ===========================================================================
# Main entry point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the hslower CLI.

    Parameters
    ----------
    argv:
        Command-line arguments.  ``None`` → ``sys.argv[1:]``.

    Returns
    -------
    int
        Exit code (see module docstring for semantics).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)

    # No subcommand given → print help.
    if not hasattr(args, "func"):
        parser.print_help(sys.stderr)
        return EXIT_INFRA

    try:
        return args.func(args)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else EXIT_INFRA


if __name__ == "__main__":
    raise SystemExit(main())
