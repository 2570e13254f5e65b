from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import numpy as np
import segno
from PIL import Image

from .capacity import QRParameters
from .chunking import ContentChunk
from .errors import EncodingParameterOverflow
from .pixels import PixelGrid

MODULE_SCALE = 4  # pixels per module edge, keeps blocks aligned to codec macroblocks


@dataclass(frozen=True)
class RunMetadata:
    """Values shared by every frame of one encoding run."""
    total_frames: int
    content_hash: str
    is_compressed: bool
    original_size: int
    encoded_size: int


@dataclass(frozen=True)
class FrameMetadata:
    frame_index: int
    total_frames: int
    content_hash: str
    is_compressed: bool
    original_size: int
    encoded_size: int
    qr_version: int
    qr_error_correction: str
    timestamp: str
    chunk_id: Optional[str] = None


@dataclass
class QRFrame:
    image_data: PixelGrid
    metadata: FrameMetadata
    raw_data: bytes

    @property
    def width(self) -> int:
        return self.image_data.width

    @property
    def height(self) -> int:
        return self.image_data.height

    def to_image(self) -> Image.Image:
        return self.image_data.to_image()


def make_symbol(payload: bytes, params: QRParameters) -> 'segno.QRCode':
    """Build a byte-mode QR symbol pinned to the run's version and ECC level."""
    if len(payload) > params.max_bytes:
        raise EncodingParameterOverflow(
            f"{len(payload)} bytes exceed version {params.version}-{params.error_correction_level} "
            f"capacity of {params.max_bytes}")
    try:
        return segno.make(payload, version=params.version, error=params.error_correction_level,
                          mode='byte', micro=False, boost_error=False)
    except segno.DataOverflowError as e:
        raise EncodingParameterOverflow(str(e)) from e


def rasterize(qr: 'segno.QRCode', scale: int = MODULE_SCALE) -> PixelGrid:
    """Render modules as scale x scale RGBA blocks, dark -> black, light -> white."""
    dark = np.array([list(row) for row in qr.matrix_iter(scale=1, border=0)], dtype=bool)
    dark = np.repeat(np.repeat(dark, scale, axis=0), scale, axis=1)
    rgb = np.where(dark, 0, 255).astype(np.uint8)
    alpha = np.full(rgb.shape, 255, dtype=np.uint8)
    return PixelGrid.from_array(np.dstack([rgb, rgb, rgb, alpha]))


def encode_frame(chunk: ContentChunk, params: QRParameters, run: RunMetadata,
                 scale: int = MODULE_SCALE) -> QRFrame:
    """Encode one chunk (header + payload) into a QR frame."""
    raw = chunk.header().pack() + chunk.data
    qr = make_symbol(raw, params)
    metadata = FrameMetadata(
        frame_index=chunk.chunk_index,
        total_frames=run.total_frames,
        content_hash=run.content_hash,
        is_compressed=run.is_compressed,
        original_size=run.original_size,
        encoded_size=run.encoded_size,
        qr_version=params.version,
        qr_error_correction=params.error_correction_level,
        timestamp=datetime.now(timezone.utc).isoformat(),
        chunk_id=chunk.chunk_id,
    )
    return QRFrame(image_data=rasterize(qr, scale), metadata=metadata, raw_data=raw)
