"""
lzsacompress package
"""
__all__ = [
    "compress_file",
    "resolve_options",
    "RunOptions",
    "UsageError",
    "CompressionFlags",
    "CompressionOutcome",
    "StatusCode",
    "TokenStats",
    "__version__",
]

__version__ = "1.0.0"

from .core import CompressionFlags, CompressionOutcome, StatusCode, TokenStats
from .engine import compress_file
from .options import RunOptions, UsageError, resolve_options
