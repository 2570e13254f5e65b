import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .batch import BatchDecodingOptions, FrameDecoder, batch_decode
from .compression import decompress_if_gzipped
from .decoding_qr import DecodedFrame, decode_frame
from .errors import ChunkCountMismatch, FrameCodecError, MissingFrames
from .integrity import content_hash
from .pixels import PixelGrid

logger = logging.getLogger(__name__)


@dataclass
class ReconstructionMetadata:
    total_frames: int
    processed_frames: int
    missing_frames: List[int] = field(default_factory=list)
    is_compressed: bool = False
    original_size: int = 0
    content_hash: str = ''


@dataclass
class ReconstructionResult:
    success: bool
    original_content: Optional[bytes] = None
    metadata: Optional[ReconstructionMetadata] = None
    error: Optional[str] = None
    failure: Optional[str] = None


@dataclass
class FrameSequenceReport:
    is_complete: bool
    missing_frames: List[int]
    duplicate_frames: List[int]  # source frame indices superseded by an earlier copy
    invalid_frames: List[int]
    total_expected: int


def _failed(e: FrameCodecError, metadata: Optional[ReconstructionMetadata] = None) -> ReconstructionResult:
    return ReconstructionResult(success=False, metadata=metadata, error=str(e), failure=type(e).__name__)


def agreed_total_chunks(valid_frames: Sequence[DecodedFrame]) -> int:
    """Total chunk count all valid frames report; disagreement raises ChunkCountMismatch."""
    counts = [f.chunk_metadata.total_chunks for f in valid_frames]
    if len(set(counts)) > 1:
        raise ChunkCountMismatch(counts)
    return counts[0]


def map_chunks(valid_frames: Sequence[DecodedFrame]) -> Dict[int, DecodedFrame]:
    """chunk_index -> frame; the first occurrence of an index wins."""
    chunk_map: Dict[int, DecodedFrame] = {}
    for frame in valid_frames:
        chunk_map.setdefault(frame.chunk_metadata.chunk_index, frame)
    return chunk_map


def validate_frame_sequence(frames: Sequence[DecodedFrame]) -> FrameSequenceReport:
    valid = [f for f in frames if f.is_valid]
    invalid = [f.frame_index for f in frames if not f.is_valid]
    if not valid:
        return FrameSequenceReport(False, [], [], invalid, 0)

    total = valid[0].chunk_metadata.total_chunks
    seen: Dict[int, List[int]] = {}
    for frame in valid:
        seen.setdefault(frame.chunk_metadata.chunk_index, []).append(frame.frame_index)

    missing = [i for i in range(total) if i not in seen]
    duplicates = [idx for i in sorted(seen) for idx in seen[i][1:]]
    return FrameSequenceReport(
        is_complete=not missing,
        missing_frames=missing,
        duplicate_frames=duplicates,
        invalid_frames=invalid,
        total_expected=total,
    )


def reconstruct(frames: Sequence[DecodedFrame], expected_hash: Optional[str] = None) -> ReconstructionResult:
    """Rebuild the original bytes from decoded frames.

    All-or-nothing: any missing chunk index fails the call with the list of
    gaps. Gzip is undone when the stream carries its signature. When
    expected_hash is given and only the raw stream matches it, the raw stream
    is returned (content that was itself gzip data stored uncompressed).
    """
    valid = [f for f in frames if f.is_valid]
    if not valid:
        return _failed(MissingFrames([], 'No valid frames available for reconstruction'))

    processed = len(valid)
    try:
        total = agreed_total_chunks(valid)
    except ChunkCountMismatch as e:
        logger.warning("%s", e)
        return _failed(e, ReconstructionMetadata(total_frames=valid[0].chunk_metadata.total_chunks,
                                                 processed_frames=processed))

    chunk_map = map_chunks(valid)
    missing = [i for i in range(total) if i not in chunk_map]
    if missing:
        return _failed(MissingFrames(missing),
                       ReconstructionMetadata(total_frames=total, processed_frames=processed,
                                              missing_frames=missing))

    combined = b''.join(chunk_map[i].payload for i in range(total))
    content, is_compressed = decompress_if_gzipped(combined)
    digest = content_hash(content)
    if is_compressed and expected_hash and digest != expected_hash and content_hash(combined) == expected_hash:
        content, is_compressed, digest = combined, False, expected_hash

    logger.info("Reconstructed %d bytes from %d chunks (compressed=%s)", len(content), total, is_compressed)
    return ReconstructionResult(
        success=True,
        original_content=content,
        metadata=ReconstructionMetadata(
            total_frames=total,
            processed_frames=processed,
            missing_frames=[],
            is_compressed=is_compressed,
            original_size=len(content),
            content_hash=digest,
        ),
    )


def attempt_partial_reconstruction(frames: Sequence[DecodedFrame],
                                   expected_hash: Optional[str] = None) -> ReconstructionResult:
    """Diagnostic reconstruction for incomplete captures.

    Never fills gaps; it only reports what is missing, with counts, so a caller
    can re-extract specific frames.
    """
    report = validate_frame_sequence(frames)
    if report.is_complete:
        return reconstruct(frames, expected_hash)

    valid = [f for f in frames if f.is_valid]
    if not valid:
        return _failed(MissingFrames([], f"No valid frames; {len(report.invalid_frames)} failed to decode"),
                       ReconstructionMetadata(total_frames=0, processed_frames=0))
    try:
        agreed_total_chunks(valid)
    except ChunkCountMismatch as e:
        return _failed(e, ReconstructionMetadata(total_frames=report.total_expected, processed_frames=len(valid)))

    available = map_chunks(valid)
    gaps = [i for i in range(report.total_expected) if i not in available]
    if gaps:
        logger.warning("Partial reconstruction: %d of %d chunks missing, %d duplicates, %d invalid frames",
                       len(gaps), report.total_expected, len(report.duplicate_frames), len(report.invalid_frames))
        return _failed(
            MissingFrames(gaps, f"Partial reconstruction attempted but {len(gaps)} frames are missing: "
                                f"{', '.join(str(i) for i in gaps)}"),
            ReconstructionMetadata(total_frames=report.total_expected, processed_frames=len(valid),
                                   missing_frames=gaps))
    return reconstruct(valid, expected_hash)


async def decode_and_reconstruct(images: Sequence[PixelGrid], options: Optional[BatchDecodingOptions] = None,
                                 decoder: FrameDecoder = decode_frame,
                                 expected_hash: Optional[str] = None) -> ReconstructionResult:
    frames = await batch_decode(images, options, decoder)
    return reconstruct(frames, expected_hash)
