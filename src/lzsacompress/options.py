from __future__ import annotations
import argparse, re
from dataclasses import dataclass
from typing import Optional, Sequence

from .core import MIN_MATCH_SIZE, MAX_MATCH_SIZE
from . import __version__

PROG = "lzsa"
_INT_RE = re.compile(r"[+-]?[0-9]+")


class UsageError(ValueError):
    """Malformed or conflicting command line; `option` names the offending token."""

    def __init__(self, option: Optional[str], reason: str):
        self.option = option
        self.reason = reason
        super().__init__(f"{option}: {reason}" if option else reason)


@dataclass(frozen=True)
class RunOptions:
    input_path: str
    output_path: str
    favor_ratio: bool = True
    backward: bool = False
    verbose: bool = False
    show_stats: bool = False
    min_match_size: Optional[int] = None
    dictionary_path: Optional[str] = None


def build_parser(prog: str = PROG) -> argparse.ArgumentParser:
    """Usage text only; never used to parse. resolve_options() owns the grammar and its checks."""
    p = argparse.ArgumentParser(
        prog=prog,
        usage=f"%(prog)s [-v] [-b] [-stats] [-D <filename>] "
              f"[-m <value> | --prefer-ratio | --prefer-speed] <infile> <outfile>",
        description=f"LZSA command-line compressor {__version__}",
        epilog="Minimum match size and --prefer-ratio/--prefer-speed are mutually exclusive.",
        add_help=False,
    )
    p.add_argument("-stats", action="store_true", help="show compressed data stats")
    p.add_argument("-v", action="store_true", help="be verbose")
    p.add_argument("-b", action="store_true", help="compress backward (requires a backward decompressor)")
    p.add_argument("-D", metavar="<filename>", help="use dictionary file")
    p.add_argument("-m", metavar="<value>",
                   help=f"minimum match size ({MIN_MATCH_SIZE}-{MAX_MATCH_SIZE}) (default: engine choice)")
    p.add_argument("--prefer-ratio", action="store_true", help="favor compression ratio (default)")
    p.add_argument("--prefer-speed", action="store_true", help="favor decompression speed (same as -m3)")
    p.add_argument("infile", metavar="<infile>", help="file to compress")
    p.add_argument("outfile", metavar="<outfile>", help="compressed output file")
    return p


def _parse_min_match(option: str, value: str) -> int:
    if not _INT_RE.fullmatch(value):
        raise UsageError(option, f"invalid minimum match size {value!r}")
    n = int(value)
    if not MIN_MATCH_SIZE <= n <= MAX_MATCH_SIZE:
        raise UsageError(option, f"minimum match size must be between {MIN_MATCH_SIZE} and {MAX_MATCH_SIZE}")
    return n


def resolve_options(tokens: Sequence[str]) -> RunOptions:
    """Resolve command-line tokens (without the program name) into RunOptions.

    Single left-to-right pass; the first failing token raises UsageError.
    """
    input_path: Optional[str] = None
    output_path: Optional[str] = None
    dictionary_path: Optional[str] = None
    min_match: Optional[int] = None
    min_match_defined = False
    favor_ratio = True
    verbose = backward = show_stats = False

    i = 0
    n = len(tokens)
    while i < n:
        tok = tokens[i]
        if tok.startswith("-D"):
            if dictionary_path is not None:
                raise UsageError("-D", "dictionary specified more than once")
            if tok == "-D":
                if i + 1 >= n:
                    raise UsageError("-D", "missing dictionary filename")
                i += 1
                dictionary_path = tokens[i]
            else:
                dictionary_path = tok[2:]
        elif tok.startswith("-m"):
            if min_match_defined:
                raise UsageError("-m", "minimum match size already defined")
            if tok == "-m":
                if i + 1 >= n:
                    raise UsageError("-m", "missing minimum match size")
                i += 1
                value = tokens[i]
            else:
                value = tok[2:]
            min_match = _parse_min_match("-m", value)
            min_match_defined = True
            favor_ratio = False
        elif tok == "--prefer-ratio":
            if min_match_defined:
                raise UsageError(tok, "minimum match size already defined")
            min_match = None
            min_match_defined = True
        elif tok == "--prefer-speed":
            if min_match_defined:
                raise UsageError(tok, "minimum match size already defined")
            min_match = 3
            min_match_defined = True
            favor_ratio = False
        elif tok == "-v":
            if verbose:
                raise UsageError(tok, "specified more than once")
            verbose = True
        elif tok == "-b":
            if backward:
                raise UsageError(tok, "specified more than once")
            backward = True
        elif tok == "-stats":
            if show_stats:
                raise UsageError(tok, "specified more than once")
            show_stats = True
        elif input_path is None:
            input_path = tok
        elif output_path is None:
            output_path = tok
        else:
            raise UsageError(tok, "unexpected extra argument")
        i += 1

    if input_path is None:
        raise UsageError(None, "missing input filename")
    if output_path is None:
        raise UsageError(None, "missing output filename")

    return RunOptions(
        input_path=input_path,
        output_path=output_path,
        favor_ratio=favor_ratio,
        backward=backward,
        verbose=verbose,
        show_stats=show_stats,
        min_match_size=min_match,
        dictionary_path=dictionary_path,
    )
