from __future__ import annotations
import os, sys
from typing import Optional, TextIO

from .core import MiB, CompressionOutcome, Status, StatusCode, TokenStats, UnknownStatus
from .options import RunOptions

EXIT_OK = 0
EXIT_FAILURE = 100

PROGRESS_THRESHOLD = 1 * MiB

_MESSAGES = {
    StatusCode.SOURCE_READ_ERROR: "error reading '{input}'",
    StatusCode.DESTINATION_WRITE_ERROR: "error writing '{output}'",
    StatusCode.DICTIONARY_READ_ERROR: "error reading dictionary '{dictionary}'",
    StatusCode.OUT_OF_MEMORY: "out of memory",
    StatusCode.INTERNAL_COMPRESSION_ERROR: "internal compression error",
    StatusCode.RAW_BLOCK_TOO_LARGE: "error: raw blocks can only be used with files <= 64 Kb",
    StatusCode.RAW_BLOCK_INCOMPRESSIBLE_TOO_LARGE: "error: incompressible data needs to be <= 64 Kb in raw blocks",
}


def status_message(status: Status, options: RunOptions) -> Optional[str]:
    """Diagnostic line for a failed status; None on success."""
    if isinstance(status, UnknownStatus):
        return f"unknown compression error {status.code}"
    if status is StatusCode.OK:
        return None
    return _MESSAGES[status].format(input=options.input_path, output=options.output_path,
                                    dictionary=options.dictionary_path)


def exit_code(status: Status) -> int:
    return EXIT_OK if status is StatusCode.OK else EXIT_FAILURE


# ----------------------------
# Progress
# ----------------------------
class ProgressReporter:
    """Engine progress callback: one self-overwriting line for inputs of 1 MiB and up."""

    def __init__(self, total_size: Optional[int] = None, stream: Optional[TextIO] = None,
                 threshold: int = PROGRESS_THRESHOLD):
        self.total_size = total_size
        self.stream = stream
        self.threshold = threshold

    @classmethod
    def for_path(cls, path: str, stream: Optional[TextIO] = None) -> "ProgressReporter":
        try:
            total = os.stat(path).st_size
        except OSError:
            total = None
        return cls(total, stream)

    def __call__(self, original_size: int, compressed_size: int) -> None:
        total = original_size if self.total_size is None else max(self.total_size, original_size)
        if total < self.threshold:
            return
        pct = compressed_size * 100.0 / original_size if original_size else 0.0
        out = self.stream or sys.stdout
        try:
            out.write(f"\r{original_size} => {compressed_size} ({pct:g} %)     \b\b\b\b\b")
            out.flush()
        except (OSError, ValueError):
            pass


# ----------------------------
# Summary & stats
# ----------------------------
def compression_percent(outcome: CompressionOutcome) -> float:
    if not outcome.original_size:
        return 0.0
    return outcome.compressed_size * 100.0 / outcome.original_size


def bytes_per_token(outcome: CompressionOutcome) -> float:
    if not outcome.command_count:
        return 0.0
    return outcome.original_size / outcome.command_count


def summary_lines(outcome: CompressionOutcome, input_path: str, elapsed_us: int) -> list[str]:
    delta = elapsed_us / 1000000.0
    speed = (outcome.original_size / 1048576.0) / delta if delta > 0 else 0.0
    return [
        f"\rCompressed '{input_path}' in {delta:g} seconds, {speed:.2g} Mb/s, "
        f"{outcome.command_count} tokens ({bytes_per_token(outcome):g} bytes/token), "
        f"{outcome.original_size} into {outcome.compressed_size} bytes ==> {compression_percent(outcome):g} %",
        f"Safe distance: {outcome.safe_distance} (0x{outcome.safe_distance:X})",
    ]


def _line(label: str, divisor: int, lo: int, total: int, hi: int, extra: str = "") -> str:
    if divisor <= 0:
        return f"{label}: none"
    return f"{label}: min: {lo} avg: {total // divisor} max: {hi} {extra}count: {divisor}"


def stats_lines(stats: TokenStats) -> list[str]:
    s = stats
    return [
        _line("Literals", s.literals_divisor, s.min_literals, s.total_literals, s.max_literals),
        _line("Offsets", s.match_divisor, s.min_offset, s.total_offsets, s.max_offset,
              f"reps: {s.num_rep_offsets} "),
        _line("Match lens", s.match_divisor, s.min_match_len, s.total_match_lens, s.max_match_len),
        _line("RLE1 lens", s.rle1_divisor, s.min_rle1_len, s.total_rle1_lens, s.max_rle1_len),
        _line("RLE2 lens", s.rle2_divisor, s.min_rle2_len, s.total_rle2_lens, s.max_rle2_len),
    ]


def report_result(outcome: CompressionOutcome, options: RunOptions, elapsed_us: int = 0,
                  out: Optional[TextIO] = None, err: Optional[TextIO] = None) -> int:
    """Print the outcome of a run and return the process exit code."""
    out = out or sys.stdout
    err = err or sys.stderr

    msg = status_message(outcome.status, options)
    if msg is not None:
        print(msg, file=err, flush=True)
        return exit_code(outcome.status)

    if options.verbose:
        for line in summary_lines(outcome, options.input_path, elapsed_us):
            print(line, file=out)
    if options.show_stats:
        for line in stats_lines(outcome.stats):
            print(line, file=out)
    out.flush()
    return exit_code(outcome.status)
