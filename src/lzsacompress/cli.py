from __future__ import annotations
import sys
from typing import Optional

from .clock import Clock
from .engine import EngineLoadError, load_engine
from .invoker import invoke
from .options import PROG, UsageError, build_parser, resolve_options
from .report import EXIT_FAILURE, ProgressReporter, report_result


def _usage_error(e: UsageError) -> int:
    print(f"{PROG}: error: {e}", file=sys.stderr)
    build_parser().print_help(sys.stderr)
    return EXIT_FAILURE


def main(argv: Optional[list[str]] = None, *, clock: Optional[Clock] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)

    try:
        options = resolve_options(argv)
    except UsageError as e:
        return _usage_error(e)

    try:
        engine = load_engine()
    except EngineLoadError as e:
        print(f"{PROG}: {e}", file=sys.stderr)
        return EXIT_FAILURE

    clock = clock or Clock()
    progress = ProgressReporter.for_path(options.input_path)
    result = invoke(options, engine, clock, progress)
    return report_result(result.outcome, options, result.elapsed_us)


if __name__ == "__main__":
    raise SystemExit(main())
