# Copyright 2025
"""
lzsacompress.engine

Pure-Python reference engine: greedy LZSA1 block encoder.

Frame:
  HEADER: 0x7B 0x9E | traits(u8)=0x00
  Repeated blocks:
    BHDR: length(u24 LE); bit 23 set -> stored (uncompressed) payload
    PAYLOAD: length bytes
  FOOTER: 0x00 0x00 0x00

Command (one per token):
  TOKEN: O|LLL|MMMM
    O    = 0 -> 8-bit offset, 1 -> 16-bit offset
    LLL  = literal count 0-6, 7 -> extension
    MMMM = match length - 3 (0-14), 15 -> extension
  [literal ext]  byte < 249: 7 + byte | 249: 256 + byte | 250: u16 LE
  LITERALS
  OFFSET: negative offset, u8 or u16 LE
  [match ext]    byte < 238: 18 + byte | 239: 256 + byte | 238: u16 LE

The last command of a block carries literals only. There is no repeat-offset
token. Raw blocks (no frame) end with an end-of-data marker instead: match
extension 238 followed by u16 0.

Matches reach back up to 65535 bytes, across block boundaries and into the
last 64 KiB of an optional dictionary.
"""

from __future__ import annotations
import importlib
import os
import struct
from array import array
from typing import BinaryIO, List, Optional, Tuple

from .core import (
    CompressionFlags, CompressionOutcome, Engine, ProgressCallback, StatusCode, TokenStats,
    RAW_BLOCK_LIMIT, failed,
)

# ----------------------------
# Format constants
# ----------------------------
FRAME_HEADER = b"\x7b\x9e\x00"
FRAME_FOOTER = b"\x00\x00\x00"
BHDR = struct.Struct("<HB")       # u24 LE split as low u16 + high u8
STORED_BIT = 0x800000

BLOCK_SIZE = 64 * 1024
MAX_OFFSET = 65535
MAX_LEN = 65535
FORMAT_MIN_MATCH = 3

LITERALS_RUN_LEN = 7
MATCH_RUN_LEN = 15

# Policy caps (can be overridden by env)
DEFAULT_MAX_CHAIN = 256


def max_chain(favor_ratio: bool = True) -> int:
    """Hash-chain search depth from $LZSA_MAX_CHAIN; speed mode searches 1/16 of it."""
    raw = os.environ.get("LZSA_MAX_CHAIN", "")
    try:
        depth = int(raw) if raw.strip() else DEFAULT_MAX_CHAIN
    except ValueError:
        raise ValueError(f"invalid LZSA_MAX_CHAIN {raw!r}") from None
    depth = max(1, depth)
    return depth if favor_ratio else max(1, depth // 16)


Command = Tuple[int, int, int, int]   # literal_start, literal_len, offset, match_len


class EngineLoadError(RuntimeError):
    pass


class _Incompressible(Exception):
    pass


# ----------------------------
# Match finder
# ----------------------------
class _HashChains:
    __slots__ = ("buf", "head", "prev", "max_chain", "min_match")

    def __init__(self, buf: bytes, *, max_chain: int, min_match: int):
        self.buf = buf
        self.head: dict = {}
        self.prev = array("i", [-1]) * len(buf)
        self.max_chain = max_chain
        self.min_match = min_match

    def insert(self, pos: int) -> None:
        key = self.buf[pos:pos + 3]
        if len(key) == 3:
            self.prev[pos] = self.head.get(key, -1)
            self.head[key] = pos

    def insert_range(self, start: int, end: int) -> None:
        for p in range(start, end):
            self.insert(p)

    def find(self, pos: int, end: int) -> Tuple[int, int]:
        buf = self.buf
        limit = min(end - pos, MAX_LEN)
        if limit < self.min_match:
            return 0, 0
        cand = self.head.get(buf[pos:pos + 3], -1)
        best_len = best_off = 0
        chain = self.max_chain
        while cand >= 0 and chain > 0:
            off = pos - cand
            if off > MAX_OFFSET:
                break
            if buf[cand + best_len] == buf[pos + best_len]:
                n = 0
                while n < limit and buf[cand + n] == buf[pos + n]:
                    n += 1
                if n > best_len:
                    best_len, best_off = n, off
                    if n == limit:
                        break
            cand = self.prev[cand]
            chain -= 1
        if best_len < self.min_match:
            return 0, 0
        return best_off, best_len


def _parse_block(chains: _HashChains, start: int, end: int) -> List[Command]:
    """Greedy parse; the returned list always ends with a literals-only command."""
    cmds: List[Command] = []
    lit_start = pos = start
    while pos < end:
        off, length = chains.find(pos, end)
        if length:
            cmds.append((lit_start, pos - lit_start, off, length))
            chains.insert_range(pos, pos + length)
            pos += length
            lit_start = pos
        else:
            chains.insert(pos)
            pos += 1
    cmds.append((lit_start, end - lit_start, 0, 0))
    return cmds


# ----------------------------
# Token writer
# ----------------------------
def _literal_ext(out: bytearray, n: int) -> None:
    if n < LITERALS_RUN_LEN:
        return
    if n < 256:
        out.append(n - LITERALS_RUN_LEN)
    elif n < 512:
        out += bytes((249, n - 256))
    elif n <= MAX_LEN:
        out.append(250)
        out += struct.pack("<H", n)
    else:
        raise _Incompressible(n)


def _match_ext(out: bytearray, m: int) -> None:
    if m - FORMAT_MIN_MATCH < MATCH_RUN_LEN:
        return
    if m < 256:
        out.append(m - 18)
    elif m < 512:
        out += bytes((239, m - 256))
    else:
        out.append(238)
        out += struct.pack("<H", m)


def _serialize(buf: bytes, cmds: List[Command], *, eod: bool) -> Tuple[bytearray, List[Tuple[int, int]]]:
    """Encode commands; also return (payload_end, original_end) after each command."""
    out = bytearray()
    marks: List[Tuple[int, int]] = []
    orig = 0
    for lit_start, lits, off, mlen in cmds:
        last = mlen == 0
        m_bits = 0 if last else min(mlen - FORMAT_MIN_MATCH, MATCH_RUN_LEN)
        if last and eod:
            m_bits = MATCH_RUN_LEN
        token = (0x80 if off > 256 else 0) | (min(lits, LITERALS_RUN_LEN) << 4) | m_bits
        out.append(token)
        _literal_ext(out, lits)
        out += buf[lit_start:lit_start + lits]
        if not last:
            if off > 256:
                out += struct.pack("<H", (-off) & 0xFFFF)
            else:
                out.append((-off) & 0xFF)
            _match_ext(out, mlen)
        elif eod:
            out += b"\x00\xee\x00\x00"
        orig += lits + mlen
        marks.append((len(out), orig))
    return out, marks


def _record(stats: TokenStats, cmds: List[Command]) -> None:
    # LZSA1 has no repeat-offset token, so num_rep_offsets stays 0
    for _lit_start, lits, off, mlen in cmds:
        if lits:
            stats.add_literals(lits)
        if mlen:
            stats.add_match(off, mlen)


def _block_header(length: int, stored: bool) -> bytes:
    v = length | (STORED_BIT if stored else 0)
    return BHDR.pack(v & 0xFFFF, v >> 16)


def _min_match(min_match_size: int) -> int:
    if not min_match_size:
        return FORMAT_MIN_MATCH
    return max(FORMAT_MIN_MATCH, int(min_match_size))


# ----------------------------
# Compression
# ----------------------------
def _compress_data(data: bytes, history: bytes, f_out: BinaryIO, flags: CompressionFlags,
                   min_match_size: int, progress: Optional[ProgressCallback]) -> CompressionOutcome:
    backward = bool(flags & CompressionFlags.BACKWARD)
    raw = bool(flags & CompressionFlags.RAW_BLOCK)
    if backward:
        data = data[::-1]
        history = history[::-1]

    buf = history + data
    base = len(history)
    chains = _HashChains(
        buf,
        max_chain=max_chain(bool(flags & CompressionFlags.FAVOR_RATIO)),
        min_match=_min_match(min_match_size),
    )
    chains.insert_range(0, base)

    stats = TokenStats()
    commands = 0

    if raw:
        cmds = _parse_block(chains, base, len(buf))
        try:
            payload, marks = _serialize(buf, cmds, eod=True)
        except _Incompressible:
            return failed(StatusCode.RAW_BLOCK_INCOMPRESSIBLE_TOO_LARGE)
        _record(stats, cmds)
        if backward:
            payload.reverse()
        f_out.write(payload)
        if progress is not None:
            progress(len(data), len(payload))
        safe = max([o - c for c, o in marks] + [0]) - (len(data) - len(payload))
        return CompressionOutcome(StatusCode.OK, len(data), len(payload), len(cmds), max(0, safe), stats)

    f_out.write(FRAME_HEADER)
    written = len(FRAME_HEADER)
    max_delta = -written

    for start in range(base, len(buf), BLOCK_SIZE):
        end = min(start + BLOCK_SIZE, len(buf))
        cmds = _parse_block(chains, start, end)
        try:
            payload, marks = _serialize(buf, cmds, eod=False)
        except _Incompressible:
            payload = None
        block_orig = start - base
        stored = payload is None or len(payload) >= end - start
        if stored:
            payload = bytearray(buf[start:end])
            marks = [(len(payload), len(payload))]
        else:
            _record(stats, cmds)
            commands += len(cmds)
        if backward:
            payload.reverse()
        f_out.write(_block_header(len(payload), stored))
        written += BHDR.size
        f_out.write(payload)
        for comp_end, orig_end in marks:
            max_delta = max(max_delta, (block_orig + orig_end) - (written + comp_end))
        written += len(payload)
        if progress is not None:
            progress(end - base, written)

    f_out.write(FRAME_FOOTER)
    written += len(FRAME_FOOTER)
    safe = max(0, max_delta - (len(data) - written))
    return CompressionOutcome(StatusCode.OK, len(data), written, commands, safe, stats)


def compress_file(
    input_path: str,
    output_path: str,
    dictionary_path: Optional[str] = None,
    flags: CompressionFlags = CompressionFlags.FAVOR_RATIO,
    min_match_size: int = 0,
    progress: Optional[ProgressCallback] = None,
) -> CompressionOutcome:
    """Compress input_path into output_path; failures come back as a status, not an exception."""
    try:
        try:
            with open(input_path, "rb") as f_in:
                data = f_in.read()
        except OSError:
            return failed(StatusCode.SOURCE_READ_ERROR)

        history = b""
        if dictionary_path is not None:
            try:
                with open(dictionary_path, "rb") as f_dict:
                    history = f_dict.read()
            except OSError:
                return failed(StatusCode.DICTIONARY_READ_ERROR)
            # dictionary bytes adjacent to the data stay in reach
            if flags & CompressionFlags.BACKWARD:
                history = history[:BLOCK_SIZE]
            else:
                history = history[-BLOCK_SIZE:]

        if flags & CompressionFlags.RAW_BLOCK and len(data) > RAW_BLOCK_LIMIT:
            return failed(StatusCode.RAW_BLOCK_TOO_LARGE)

        try:
            f_out = open(output_path, "wb")
        except OSError:
            return failed(StatusCode.DESTINATION_WRITE_ERROR)
        try:
            with f_out:
                return _compress_data(data, history, f_out, flags, min_match_size, progress)
        except OSError:
            return failed(StatusCode.DESTINATION_WRITE_ERROR)
        except (ValueError, struct.error):
            return failed(StatusCode.INTERNAL_COMPRESSION_ERROR)
    except MemoryError:
        return failed(StatusCode.OUT_OF_MEMORY)


# ----------------------------
# Engine selection
# ----------------------------
def load_engine(target: Optional[str] = None) -> Engine:
    """Return the engine named by `target` (or $LZSA_ENGINE) as 'module:attribute'; default is compress_file."""
    target = target or os.environ.get("LZSA_ENGINE") or ""
    if not target:
        try:
            max_chain()
        except ValueError as e:
            raise EngineLoadError(str(e)) from None
        return compress_file
    mod_name, sep, attr = target.partition(":")
    if not sep or not mod_name or not attr:
        raise EngineLoadError(f"invalid engine target {target!r} (expected 'module:attribute')")
    try:
        mod = importlib.import_module(mod_name)
    except ImportError as e:
        raise EngineLoadError(f"cannot import engine module {mod_name!r}: {e}") from e
    fn = getattr(mod, attr, None)
    if not callable(fn):
        raise EngineLoadError(f"engine {target!r} is not callable")
    return fn
