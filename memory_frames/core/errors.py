from typing import List, Optional


class FrameCodecError(Exception):
    """Base error for frame codec operations."""


class EmptyPayloadError(FrameCodecError):
    """Encode was asked to store zero bytes."""


class EncodingParameterOverflow(FrameCodecError):
    """A chunk plus header does not fit the chosen symbol, or the run needs too many chunks."""


class FrameDetectionFailure(FrameCodecError):
    """No decodable QR symbol in the still image."""


class HeaderValidationFailure(FrameCodecError):
    def __init__(self, message: str, raw_data: bytes = b''):
        super().__init__(message)
        self.raw_data = raw_data


class PayloadLengthMismatch(FrameCodecError):
    """Payload after the header disagrees with the declared length (truncated capture)."""

    def __init__(self, expected: int, actual: int, raw_data: bytes = b''):
        super().__init__(f"Payload length mismatch. Expected: {expected}, Got: {actual}")
        self.expected = expected
        self.actual = actual
        self.raw_data = raw_data


class DecodeTimeout(FrameCodecError):
    pass


class ChunkCountMismatch(FrameCodecError):
    def __init__(self, counts: List[int]):
        super().__init__(f"Valid frames disagree on total chunk count: {sorted(set(counts))}")
        self.counts = counts


class MissingFrames(FrameCodecError):
    def __init__(self, missing: List[int], message: Optional[str] = None):
        super().__init__(message or f"Missing frames: {', '.join(str(i) for i in missing)}")
        self.missing = missing


class DecompressionFailure(FrameCodecError):
    """Gzip signature present but the stream would not inflate."""
