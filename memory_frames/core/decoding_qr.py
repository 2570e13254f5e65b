import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

import cv2
import numpy as np
import zxingcpp

from .chunking import HEADER_SIZE, ChunkHeader, parse_header
from .errors import FrameCodecError, FrameDetectionFailure, PayloadLengthMismatch
from .pixels import PixelGrid

logger = logging.getLogger(__name__)

BINARIZE_THRESHOLD = 128
MIN_QUIET_ZONE = 16  # pixels of white margin added before detection

# Returns the raw byte payload of every symbol found in a grayscale image.
Detector = Callable[[np.ndarray], List[bytes]]


@dataclass
class DecodeResult:
    success: bool
    content: Optional[bytes] = None
    metadata: Optional[ChunkHeader] = None
    error: Optional[str] = None
    failure: Optional[str] = None
    raw_data: Optional[bytes] = None


@dataclass
class DecodedFrame:
    """One input still after decoding; frame_index is its position in the source sequence."""
    frame_index: int
    chunk_metadata: Optional[ChunkHeader]
    payload: bytes
    is_valid: bool
    error: Optional[str] = None
    failure: Optional[str] = None

    @classmethod
    def from_result(cls, frame_index: int, result: DecodeResult) -> 'DecodedFrame':
        if result.success:
            return cls(frame_index=frame_index, chunk_metadata=result.metadata,
                       payload=result.content, is_valid=True)
        return cls.invalid(frame_index, result.error or 'Unknown decode error', result.failure)

    @classmethod
    def invalid(cls, frame_index: int, error: str, failure: Optional[str] = None) -> 'DecodedFrame':
        return cls(frame_index=frame_index, chunk_metadata=None, payload=b'',
                   is_valid=False, error=error, failure=failure)


def binarize(image: PixelGrid) -> np.ndarray:
    """Luminance grayscale, hard threshold at 128.

    Thresholding restores the contrast that lossy video compression smears out.
    """
    gray = cv2.cvtColor(image.to_array(), cv2.COLOR_RGBA2GRAY)
    _, binary = cv2.threshold(gray, BINARIZE_THRESHOLD - 1, 255, cv2.THRESH_BINARY)
    return binary


def add_quiet_zone(gray: np.ndarray) -> np.ndarray:
    """White margin around the symbol; frames are rendered edge to edge."""
    h, w = gray.shape[:2]
    pad = max(MIN_QUIET_ZONE, min(h, w) // 8)
    return cv2.copyMakeBorder(gray, pad, pad, pad, pad, cv2.BORDER_CONSTANT, value=255)


def zxing_detector(gray: np.ndarray) -> List[bytes]:
    """Find QR symbols, trying rotations and inverted polarity."""
    for candidate in (gray, cv2.bitwise_not(gray)):
        found = zxingcpp.read_barcodes(add_quiet_zone(candidate), try_rotate=True, try_downscale=True)
        payloads = [bytes(r.bytes) for r in found if r.bytes]
        if payloads:
            return payloads
    return []


def _payload_from_symbol(raw: bytes) -> DecodeResult:
    header = parse_header(raw)
    payload = raw[HEADER_SIZE:]
    if len(payload) != header.data_length:
        raise PayloadLengthMismatch(header.data_length, len(payload), raw_data=raw)
    return DecodeResult(success=True, content=payload, metadata=header, raw_data=raw)


def _failure(e: Exception) -> DecodeResult:
    return DecodeResult(success=False, error=str(e), failure=type(e).__name__,
                        raw_data=getattr(e, 'raw_data', None))


def decode_symbols(symbols: Iterable[bytes]) -> DecodeResult:
    """Return the first symbol that carries a valid chunk, else the first failure."""
    first_failure = None
    for raw in symbols:
        try:
            return _payload_from_symbol(raw)
        except FrameCodecError as e:
            logger.debug("Rejected symbol of %d bytes: %s", len(raw), e)
            if first_failure is None:
                first_failure = _failure(e)
    if first_failure is None:
        return _failure(FrameDetectionFailure('No QR code found or unreadable'))
    return first_failure


def decode_frame(image: PixelGrid, detector: Optional[Detector] = None) -> DecodeResult:
    """Decode one still image into a chunk payload. Never raises for bad frames."""
    detect = detector or zxing_detector
    try:
        symbols = detect(binarize(image))
    except (cv2.error, ValueError, RuntimeError) as e:
        return DecodeResult(success=False, error=f"Decoding failed: {e}", failure=FrameDetectionFailure.__name__)
    return decode_symbols(symbols)
