import hashlib
import zlib


def content_hash(data: bytes) -> str:
    """SHA-256 hex digest of a payload; stamped at encode time, recomputed on reconstruct."""
    return hashlib.sha256(data).hexdigest()


def chunk_id_hash(chunk_id: str) -> int:
    """32-bit traceability hash of a chunk id. Never checked against content."""
    return zlib.crc32(chunk_id.encode('utf-8')) & 0xFFFFFFFF
