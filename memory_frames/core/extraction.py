"""Boundary to whatever pulls still images out of a video container.

The codec never demuxes video itself. It asks a FrameSource for specific
frame indices and gets one ExtractedFrame back per index; a bad index is
reported on that entry, not by failing the call.
"""
import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

import cv2

from .batch import BatchDecodingOptions, FrameDecoder, batch_decode
from .decoding_qr import DecodedFrame, decode_frame
from .pixels import PixelGrid
from .reconstruct import ReconstructionResult, reconstruct

logger = logging.getLogger(__name__)

DEFAULT_FPS = 30.0


@dataclass
class ExtractedFrame:
    frame_index: int
    timestamp: float
    width: int = 0
    height: int = 0
    image: Optional[PixelGrid] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.image is not None and self.error is None


class FrameSource(Protocol):
    def extract_frames(self, video_path: str, frame_indices: Sequence[int],
                       fps: Optional[float] = None) -> List[ExtractedFrame]:
        ...


class OpenCVFrameSource:
    """FrameSource backed by cv2.VideoCapture, seeking by frame position."""

    def extract_frames(self, video_path: str, frame_indices: Sequence[int],
                       fps: Optional[float] = None) -> List[ExtractedFrame]:
        cap = cv2.VideoCapture(video_path)
        if not cap.isOpened():
            rate = fps or DEFAULT_FPS
            return [ExtractedFrame(idx, idx / rate, error=f"Video file could not be opened: {video_path}")
                    for idx in frame_indices]
        try:
            rate = fps or cap.get(cv2.CAP_PROP_FPS) or DEFAULT_FPS
            frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
            return [self._read(cap, idx, rate, frame_count) for idx in frame_indices]
        finally:
            cap.release()

    @staticmethod
    def _read(cap, idx: int, rate: float, frame_count: int) -> ExtractedFrame:
        timestamp = idx / rate
        if idx < 0 or (frame_count > 0 and idx >= frame_count):
            return ExtractedFrame(idx, timestamp,
                                  error=f"Frame index {idx} exceeds video frame count {frame_count}")
        cap.set(cv2.CAP_PROP_POS_FRAMES, idx)
        ok, bgr = cap.read()
        if not ok or bgr is None:
            return ExtractedFrame(idx, timestamp, error=f"Could not read frame {idx}")
        image = PixelGrid.from_array(cv2.cvtColor(bgr, cv2.COLOR_BGR2RGBA))
        return ExtractedFrame(idx, timestamp, image.width, image.height, image)


async def decode_extracted(extracted: Sequence[ExtractedFrame], options: Optional[BatchDecodingOptions] = None,
                           decoder: FrameDecoder = decode_frame) -> List[DecodedFrame]:
    """Batch decode extracted stills; frame_index on the output is the video frame index."""
    opts = options or BatchDecodingOptions()
    usable = [e for e in extracted if e.ok]
    decoded = await batch_decode([e.image for e in usable], opts, decoder)
    frames = [dataclasses.replace(f, frame_index=usable[f.frame_index].frame_index) for f in decoded]
    if not opts.skip_invalid_frames:
        for e in extracted:
            if not e.ok:
                frames.append(DecodedFrame.invalid(e.frame_index, e.error or 'Frame extraction failed',
                                                   'FrameExtractionFailure'))
        frames.sort(key=lambda f: f.frame_index)
    return frames


async def decode_video_frames(source: FrameSource, video_path: str, frame_indices: Sequence[int],
                              fps: Optional[float] = None, options: Optional[BatchDecodingOptions] = None,
                              decoder: FrameDecoder = decode_frame,
                              expected_hash: Optional[str] = None) -> ReconstructionResult:
    extracted = await asyncio.to_thread(source.extract_frames, video_path, list(frame_indices), fps)
    failed = [e.frame_index for e in extracted if not e.ok]
    if failed:
        logger.warning("Extraction failed for %d of %d frames: %s", len(failed), len(extracted), failed)
    frames = await decode_extracted(extracted, options, decoder)
    return reconstruct(frames, expected_hash)
