"""
Gzip compression for encoded tiles.
"""

import gzip


DEFAULT_COMPRESSION_LEVEL = 9


def gzip_compress(data: bytes, level: int = DEFAULT_COMPRESSION_LEVEL) -> bytes:
    """Gzip ``data`` with a zeroed header timestamp so output is reproducible."""
    return gzip.compress(data, compresslevel=level, mtime=0)
