from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Optional

from .clock import Clock
from .core import (
    CompressionFlags, CompressionOutcome, Engine, ProgressCallback, StatusCode, UnknownStatus,
    status_from_code,
)
from .options import RunOptions


@dataclass(frozen=True)
class Invocation:
    outcome: CompressionOutcome
    elapsed_us: int = 0


def engine_flags(options: RunOptions) -> CompressionFlags:
    flags = CompressionFlags.NONE
    if options.favor_ratio:
        flags |= CompressionFlags.FAVOR_RATIO
    if options.backward:
        flags |= CompressionFlags.BACKWARD
    return flags


def engine_min_match(options: RunOptions) -> int:
    # 0 lets the engine decide from FAVOR_RATIO
    return options.min_match_size or 0


def invoke(options: RunOptions, engine: Engine, clock: Clock,
           progress: Optional[ProgressCallback] = None) -> Invocation:
    """Run one blocking compression job; the clock is only read in verbose mode."""
    start = clock.now() if options.verbose else 0
    result = engine(
        options.input_path,
        options.output_path,
        options.dictionary_path,
        engine_flags(options),
        engine_min_match(options),
        progress,
    )
    end = clock.now() if options.verbose else 0

    # plugged engines may hand back a bare status code
    if isinstance(result, int):
        result = CompressionOutcome(status=status_from_code(result))
    elif not isinstance(result.status, (StatusCode, UnknownStatus)):
        result = replace(result, status=status_from_code(result.status))
    return Invocation(result, end - start)
