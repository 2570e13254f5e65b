"""
Test Configuration
==================

Shared fixtures for the frame codec tests.

FakeDecoder stands in for QR detection in batch tests: each input is a 1x1
PixelGrid whose red channel names the chunk it carries, so tests can script
hangs and failures without rendering symbols.
"""

import random
import threading
import time

import pytest

from memory_frames.core.chunking import split_into_chunks
from memory_frames.core.decoding_qr import DecodedFrame, DecodeResult
from memory_frames.core.pixels import PixelGrid


def tag_image(tag: int) -> PixelGrid:
    return PixelGrid(width=1, height=1, data=bytes([tag, 0, 0, 255]))


def frames_for(data: bytes, chunk_size: int):
    """DecodedFrames for data as if every chunk decoded cleanly, in chunk order."""
    frames = []
    for chunk in split_into_chunks(data, chunk_size):
        frames.append(DecodedFrame(frame_index=chunk.chunk_index, chunk_metadata=chunk.header(),
                                   payload=chunk.data, is_valid=True))
    return frames


class FakeDecoder:
    """Scriptable stand-in for decode_frame."""

    def __init__(self, chunks, hang_on=(), fail_on=(), raise_on=(), delay=0.0):
        self.chunks = chunks
        self.hang_on = set(hang_on)
        self.fail_on = set(fail_on)
        self.raise_on = set(raise_on)
        self.delay = delay
        self.release = threading.Event()
        self.lock = threading.Lock()
        self.in_flight = 0
        self.max_in_flight = 0

    def __call__(self, image: PixelGrid) -> DecodeResult:
        tag = image.data[0]
        with self.lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if tag in self.hang_on:
                self.release.wait(10)
            elif self.delay:
                time.sleep(self.delay)
            if tag in self.raise_on:
                raise RuntimeError(f"detector crashed on {tag}")
            if tag in self.fail_on:
                return DecodeResult(success=False, error='No QR code found or unreadable',
                                    failure='FrameDetectionFailure')
            chunk = self.chunks[tag]
            return DecodeResult(success=True, content=chunk.data, metadata=chunk.header())
        finally:
            with self.lock:
                self.in_flight -= 1


@pytest.fixture
def sample_text():
    return ("Remember: the deploy script reads DEPLOY_TARGET before the config file. "
            "Staging overrides live in ops/staging.env.\n")


@pytest.fixture
def random_bytes():
    def make(n: int, seed: int = 7) -> bytes:
        return random.Random(seed).randbytes(n)
    return make


@pytest.fixture
def fake_decoder_factory():
    created = []

    def make(chunks, **kwargs):
        decoder = FakeDecoder(chunks, **kwargs)
        created.append(decoder)
        return decoder

    yield make
    for decoder in created:
        decoder.release.set()
