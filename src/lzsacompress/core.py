"""
lzsacompress.core

Data exchanged across the compression engine boundary:

- CompressionFlags: engine flag bits (favor ratio, raw block, backward)
- StatusCode / UnknownStatus: the closed set of engine outcomes
- TokenStats: per-category token statistics gathered by the engine
- CompressionOutcome: everything one engine call hands back

Engine contract:
  engine(input_path, output_path, dictionary_path, flags, min_match_size, progress)
      -> CompressionOutcome

  min_match_size == 0 lets the engine pick its own minimum from the flags.
  progress(original_so_far, compressed_so_far) may be called any number of
  times, always before the engine returns.
"""

from __future__ import annotations
import enum
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

# ----------------------------
# Format constants
# ----------------------------
MIN_MATCH_SIZE = 2
MAX_MATCH_SIZE = 5
RAW_BLOCK_LIMIT = 64 * 1024

KiB = 1024
MiB = 1024 * KiB


class CompressionFlags(enum.IntFlag):
    NONE = 0
    FAVOR_RATIO = 1 << 0
    RAW_BLOCK = 1 << 1
    BACKWARD = 1 << 2


class StatusCode(enum.IntEnum):
    OK = 0
    SOURCE_READ_ERROR = 1
    DESTINATION_WRITE_ERROR = 2
    DICTIONARY_READ_ERROR = 3
    OUT_OF_MEMORY = 4
    INTERNAL_COMPRESSION_ERROR = 5
    RAW_BLOCK_TOO_LARGE = 6
    RAW_BLOCK_INCOMPRESSIBLE_TOO_LARGE = 7


@dataclass(frozen=True)
class UnknownStatus:
    """Engine status value outside of StatusCode; keeps the raw number."""
    code: int


Status = Union[StatusCode, UnknownStatus]


def status_from_code(code: int) -> Status:
    try:
        return StatusCode(int(code))
    except ValueError:
        return UnknownStatus(int(code))


def is_success(status: Status) -> bool:
    return status is StatusCode.OK


# ----------------------------
# Token statistics
# ----------------------------
@dataclass
class TokenStats:
    min_literals: int = -1
    max_literals: int = 0
    total_literals: int = 0
    literals_divisor: int = 0

    min_offset: int = -1
    max_offset: int = 0
    total_offsets: int = 0
    num_rep_offsets: int = 0

    min_match_len: int = -1
    max_match_len: int = 0
    total_match_lens: int = 0
    match_divisor: int = 0

    min_rle1_len: int = -1
    max_rle1_len: int = 0
    total_rle1_lens: int = 0
    rle1_divisor: int = 0

    min_rle2_len: int = -1
    max_rle2_len: int = 0
    total_rle2_lens: int = 0
    rle2_divisor: int = 0

    def add_literals(self, n: int) -> None:
        if self.min_literals < 0 or n < self.min_literals:
            self.min_literals = n
        self.max_literals = max(self.max_literals, n)
        self.total_literals += n
        self.literals_divisor += 1

    def add_match(self, offset: int, length: int, *, rep: bool = False) -> None:
        if self.min_offset < 0 or offset < self.min_offset:
            self.min_offset = offset
        self.max_offset = max(self.max_offset, offset)
        self.total_offsets += offset
        if rep:
            self.num_rep_offsets += 1
        if self.min_match_len < 0 or length < self.min_match_len:
            self.min_match_len = length
        self.max_match_len = max(self.max_match_len, length)
        self.total_match_lens += length
        self.match_divisor += 1

    def add_rle1(self, n: int) -> None:
        if self.min_rle1_len < 0 or n < self.min_rle1_len:
            self.min_rle1_len = n
        self.max_rle1_len = max(self.max_rle1_len, n)
        self.total_rle1_lens += n
        self.rle1_divisor += 1

    def add_rle2(self, n: int) -> None:
        if self.min_rle2_len < 0 or n < self.min_rle2_len:
            self.min_rle2_len = n
        self.max_rle2_len = max(self.max_rle2_len, n)
        self.total_rle2_lens += n
        self.rle2_divisor += 1


ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class CompressionOutcome:
    status: Status
    original_size: int = 0
    compressed_size: int = 0
    command_count: int = 0
    safe_distance: int = 0
    stats: TokenStats = field(default_factory=TokenStats)

    @property
    def ok(self) -> bool:
        return is_success(self.status)


Engine = Callable[[str, str, Optional[str], CompressionFlags, int, Optional[ProgressCallback]],
                  CompressionOutcome]


def failed(status: Status) -> CompressionOutcome:
    return CompressionOutcome(status=status)
