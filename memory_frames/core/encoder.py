import logging
import math
from dataclasses import dataclass
from typing import List, Union

from .capacity import QRParameters, select_parameters, select_uniform_parameters
from .chunking import DEFAULT_CHUNK_PAYLOAD, HEADER_SIZE, split_into_chunks
from .compression import compress_if_worthwhile
from .encoding_qr import QRFrame, RunMetadata, encode_frame
from .errors import EmptyPayloadError
from .integrity import content_hash
from .manifest import ManifestEntry, build_manifest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncodingMetadata:
    total_frames: int
    original_size: int
    encoded_size: int
    compression_ratio: float
    is_compressed: bool
    content_hash: str


@dataclass
class EncodingResult:
    frames: List[QRFrame]
    metadata: EncodingMetadata
    manifest: List[ManifestEntry]


@dataclass(frozen=True)
class EncodingEstimate:
    original_size: int
    processed_size: int
    is_compressed: bool
    estimated_frames: int
    parameters: QRParameters


def to_bytes(content: Union[str, bytes, bytearray, memoryview]) -> bytes:
    if isinstance(content, str):
        return content.encode('utf-8')
    return bytes(content)


def encode_content(content: Union[str, bytes], chunk_size: int = DEFAULT_CHUNK_PAYLOAD) -> EncodingResult:
    """Encode text or bytes into uniformly sized QR frames.

    Steps: hash the original bytes, gzip when it pays off, split, pick one QR
    version for the largest chunk, and render every chunk with it so all frames
    share the same pixel dimensions.
    """
    original = to_bytes(content)
    if not original:
        raise EmptyPayloadError('Cannot encode empty content')
    digest = content_hash(original)
    processed, is_compressed = compress_if_worthwhile(original)

    chunks = split_into_chunks(processed, chunk_size)
    params = select_uniform_parameters((len(c.data) for c in chunks), HEADER_SIZE)
    logger.info("Using uniform QR version %d-%s for all %d frames (max chunk: %d bytes)",
                params.version, params.error_correction_level, len(chunks),
                max(len(c.data) for c in chunks) + HEADER_SIZE)

    run = RunMetadata(
        total_frames=len(chunks),
        content_hash=digest,
        is_compressed=is_compressed,
        original_size=len(original),
        encoded_size=len(processed),
    )
    frames = [encode_frame(chunk, params, run) for chunk in chunks]

    return EncodingResult(
        frames=frames,
        metadata=EncodingMetadata(
            total_frames=len(frames),
            original_size=len(original),
            encoded_size=len(processed),
            compression_ratio=len(original) / len(processed),
            is_compressed=is_compressed,
            content_hash=digest,
        ),
        manifest=build_manifest(chunks),
    )


def estimate_encoding(content: Union[str, bytes], chunk_size: int = DEFAULT_CHUNK_PAYLOAD) -> EncodingEstimate:
    """Frame count and QR parameters an encode would use, without rendering anything."""
    original = to_bytes(content)
    if not original:
        raise EmptyPayloadError('Cannot estimate empty content')
    processed, is_compressed = compress_if_worthwhile(original)
    size = min(chunk_size, len(processed))
    return EncodingEstimate(
        original_size=len(original),
        processed_size=len(processed),
        is_compressed=is_compressed,
        estimated_frames=math.ceil(len(processed) / size),
        parameters=select_parameters(size + HEADER_SIZE),
    )
