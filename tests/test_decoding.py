import struct

import numpy as np
import pytest

from memory_frames.core.chunking import HEADER_SIZE, MAGIC_NUMBER, ChunkHeader
from memory_frames.core.decoding_qr import (
    DecodedFrame, add_quiet_zone, binarize, decode_frame, decode_symbols,
)
from memory_frames.core.encoder import encode_content
from memory_frames.core.pixels import PixelGrid


@pytest.fixture
def encoded_frame(sample_text):
    return encode_content(sample_text).frames[0]


def _symbol(index=0, total=1, payload=b'data', length=None):
    header = ChunkHeader(chunk_index=index, total_chunks=total,
                         data_length=len(payload) if length is None else length, chunk_id_hash=1)
    return header.pack() + payload


class TestDecodeFrame:

    def test_clean_frame_decodes(self, encoded_frame):
        result = decode_frame(encoded_frame.image_data)
        assert result.success, result.error
        assert result.content == encoded_frame.raw_data[HEADER_SIZE:]
        assert result.metadata.chunk_index == 0
        assert result.raw_data == encoded_frame.raw_data

    def test_compression_noise_is_thresholded_away(self, encoded_frame):
        arr = encoded_frame.image_data.to_array().astype(np.int16)
        noise = np.random.default_rng(3).integers(-60, 61, size=arr.shape[:2])
        for c in range(3):
            arr[:, :, c] += noise
        noisy = PixelGrid.from_array(np.clip(arr, 0, 255).astype(np.uint8))
        result = decode_frame(noisy)
        assert result.success, result.error
        assert result.content == encoded_frame.raw_data[HEADER_SIZE:]

    def test_inverted_polarity(self, encoded_frame):
        arr = encoded_frame.image_data.to_array()
        arr[:, :, :3] = 255 - arr[:, :, :3]
        result = decode_frame(PixelGrid.from_array(arr))
        assert result.success, result.error

    def test_rotated_frame(self, encoded_frame):
        arr = np.ascontiguousarray(np.rot90(encoded_frame.image_data.to_array()))
        result = decode_frame(PixelGrid.from_array(arr))
        assert result.success, result.error

    def test_blank_image_reports_no_code(self):
        blank = PixelGrid.from_array(np.full((64, 64, 4), 255, dtype=np.uint8))
        result = decode_frame(blank)
        assert not result.success
        assert result.failure == 'FrameDetectionFailure'
        assert 'No QR code found' in result.error

    def test_detector_errors_become_failures(self):
        def broken(gray):
            raise RuntimeError('detector exploded')
        blank = PixelGrid.from_array(np.full((8, 8, 4), 255, dtype=np.uint8))
        result = decode_frame(blank, detector=broken)
        assert not result.success
        assert 'detector exploded' in result.error


class TestHeaderRejection:

    def test_short_symbol(self):
        result = decode_symbols([b'MEMV\x00\x01'])
        assert not result.success
        assert result.failure == 'HeaderValidationFailure'
        assert result.raw_data == b'MEMV\x00\x01'

    def test_wrong_magic(self):
        raw = struct.pack('>IHHII', 0xCAFEBABE, 0, 1, 4, 0) + b'data'
        result = decode_symbols([raw])
        assert not result.success
        assert result.failure == 'HeaderValidationFailure'
        assert result.raw_data == raw

    def test_length_mismatch_is_distinct(self):
        raw = _symbol(payload=b'data+extra', length=4)
        result = decode_symbols([raw])
        assert not result.success
        assert result.failure == 'PayloadLengthMismatch'
        assert 'Expected: 4' in result.error

    def test_valid_symbol_after_foreign_one(self):
        result = decode_symbols([b'https://example.com', _symbol(payload=b'ours')])
        assert result.success
        assert result.content == b'ours'

    def test_rejection_through_decode_frame_never_raises(self):
        blank = PixelGrid.from_array(np.full((8, 8, 4), 255, dtype=np.uint8))
        raw = struct.pack('>IHHII', MAGIC_NUMBER, 3, 2, 4, 0) + b'data'
        result = decode_frame(blank, detector=lambda gray: [raw])
        assert not result.success
        assert result.failure == 'HeaderValidationFailure'

    def test_invalid_result_becomes_placeholder_frame(self):
        frame = DecodedFrame.from_result(5, decode_symbols([b'junk']))
        assert not frame.is_valid
        assert frame.frame_index == 5
        assert frame.chunk_metadata is None
        assert frame.payload == b''


def test_binarize_thresholds_to_two_levels(encoded_frame):
    gray = binarize(encoded_frame.image_data)
    assert gray.shape == (encoded_frame.height, encoded_frame.width)
    assert set(np.unique(gray)) <= {0, 255}


def test_quiet_zone_is_white(encoded_frame):
    padded = add_quiet_zone(binarize(encoded_frame.image_data))
    assert padded.shape[0] > encoded_frame.height
    assert (padded[0, :] == 255).all()
    assert (padded[:, -1] == 255).all()
