import math
import struct
import time
from dataclasses import dataclass
from typing import Iterator, List, Optional

from .capacity import MAX_CHUNK_SIZE
from .errors import EmptyPayloadError, EncodingParameterOverflow, HeaderValidationFailure
from .integrity import chunk_id_hash

MAGIC_NUMBER = 0x4D454D56  # "MEMV"
HEADER_FORMAT = '>IHHII'  # magic, chunk_index, total_chunks, data_length, chunk_id_hash
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)
MAX_TOTAL_CHUNKS = 0xFFFF
DEFAULT_CHUNK_PAYLOAD = MAX_CHUNK_SIZE - HEADER_SIZE

if HEADER_SIZE != 16:
    raise RuntimeError(f"Chunk header must pack to 16 bytes, got {HEADER_SIZE}")


@dataclass(frozen=True)
class ChunkHeader:
    """Fixed 16-byte header prefixed to every chunk payload inside a QR symbol.

    Wire format (big-endian):
        magic         : uint32
        chunk_index   : uint16
        total_chunks  : uint16
        data_length   : uint32  (payload bytes, header excluded)
        chunk_id_hash : uint32  (CRC-32 of the chunk id, debug only)
    """
    chunk_index: int
    total_chunks: int
    data_length: int
    chunk_id_hash: int
    magic: int = MAGIC_NUMBER

    def pack(self) -> bytes:
        return struct.pack(HEADER_FORMAT, self.magic, self.chunk_index, self.total_chunks,
                           self.data_length, self.chunk_id_hash)

    @classmethod
    def unpack(cls, data: bytes) -> 'ChunkHeader':
        """Parse the leading header of data without validating it."""
        if len(data) < HEADER_SIZE:
            raise HeaderValidationFailure(
                f"Header needs {HEADER_SIZE} bytes, got {len(data)}", raw_data=bytes(data))
        magic, idx, total, length, id_hash = struct.unpack(HEADER_FORMAT, data[:HEADER_SIZE])
        return cls(chunk_index=idx, total_chunks=total, data_length=length,
                   chunk_id_hash=id_hash, magic=magic)

    def validate(self, available: int, raw_data: bytes = b'') -> None:
        """Check magic and bounds; available is the byte count following the header."""
        if self.magic != MAGIC_NUMBER:
            raise HeaderValidationFailure(f"Invalid magic: {self.magic:#010x}", raw_data)
        if self.total_chunks <= 0:
            raise HeaderValidationFailure('Total chunk count is zero', raw_data)
        if self.chunk_index >= self.total_chunks:
            raise HeaderValidationFailure(
                f"Chunk index {self.chunk_index} out of range for {self.total_chunks} chunks", raw_data)
        if self.data_length <= 0 or self.data_length > available:
            raise HeaderValidationFailure(
                f"Declared length {self.data_length} outside 1..{available}", raw_data)


def parse_header(data: bytes) -> ChunkHeader:
    """Unpack and validate the header at the start of a decoded symbol."""
    header = ChunkHeader.unpack(data)
    header.validate(len(data) - HEADER_SIZE, raw_data=bytes(data))
    return header


@dataclass
class ContentChunk:
    data: bytes
    chunk_index: int
    total_chunks: int
    chunk_id: str

    def header(self) -> ChunkHeader:
        return ChunkHeader(
            chunk_index=self.chunk_index,
            total_chunks=self.total_chunks,
            data_length=len(self.data),
            chunk_id_hash=chunk_id_hash(self.chunk_id),
        )


def generate_chunk_id(chunk_index: int, total_chunks: int, timestamp_ms: Optional[int] = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"chunk_{chunk_index:04d}_of_{total_chunks:04d}_{timestamp_ms}"


def iter_chunks(data: bytes, chunk_size: int = DEFAULT_CHUNK_PAYLOAD) -> Iterator[ContentChunk]:
    """Yield fixed-size chunks of data; the last one may be shorter."""
    if not data:
        raise EmptyPayloadError('Refusing to chunk an empty payload')
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    size = min(chunk_size, len(data))
    total = math.ceil(len(data) / size)
    if total > MAX_TOTAL_CHUNKS:
        raise EncodingParameterOverflow(
            f"{len(data)} bytes need {total} chunks, header allows {MAX_TOTAL_CHUNKS}")
    stamp = int(time.time() * 1000)
    for idx in range(total):
        yield ContentChunk(
            data=bytes(data[idx * size:(idx + 1) * size]),
            chunk_index=idx,
            total_chunks=total,
            chunk_id=generate_chunk_id(idx, total, stamp),
        )


def split_into_chunks(data: bytes, chunk_size: int = DEFAULT_CHUNK_PAYLOAD) -> List[ContentChunk]:
    return list(iter_chunks(data, chunk_size))
