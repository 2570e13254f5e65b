import gzip
import logging
import zlib
from typing import Tuple

from .errors import DecompressionFailure

logger = logging.getLogger(__name__)

COMPRESSION_THRESHOLD = 0.9  # keep gzip output only below 90% of the original
GZIP_LEVEL = 6
GZIP_MAGIC = b'\x1f\x8b'


def compress_if_worthwhile(data: bytes, threshold: float = COMPRESSION_THRESHOLD) -> Tuple[bytes, bool]:
    """Return (processed, is_compressed)."""
    compressed = gzip.compress(data, compresslevel=GZIP_LEVEL)
    if len(compressed) < len(data) * threshold:
        logger.debug("gzip %d -> %d bytes", len(data), len(compressed))
        return compressed, True
    return data, False


def looks_gzipped(data: bytes) -> bool:
    return data[:2] == GZIP_MAGIC


def gunzip(data: bytes) -> bytes:
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as e:
        raise DecompressionFailure(f"gzip stream did not inflate: {e}") from e


def decompress_if_gzipped(data: bytes) -> Tuple[bytes, bool]:
    """Inflate data when it carries the gzip signature.

    A signature that does not inflate is treated as plain bytes.
    """
    if not looks_gzipped(data):
        return data, False
    try:
        return gunzip(data), True
    except DecompressionFailure as e:
        logger.warning("%s; using data as-is", e)
        return data, False
