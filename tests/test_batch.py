import asyncio
import os
import subprocess
import sys
import textwrap
import time
from pathlib import Path

import pytest

from conftest import tag_image
from memory_frames.core.batch import BatchDecodingOptions, batch_decode
from memory_frames.core.chunking import split_into_chunks


@pytest.fixture
def chunks():
    return split_into_chunks(bytes(range(100)), chunk_size=10)


def _decode(images, decoder, **opts):
    return asyncio.run(batch_decode(images, BatchDecodingOptions(**opts), decoder))


class TestBatchDecode:

    def test_all_frames_decoded_in_source_order(self, chunks, fake_decoder_factory):
        decoder = fake_decoder_factory(chunks)
        images = [tag_image(i) for i in range(10)]
        frames = _decode(images, decoder)
        assert [f.frame_index for f in frames] == list(range(10))
        assert all(f.is_valid for f in frames)
        assert [f.chunk_metadata.chunk_index for f in frames] == list(range(10))

    def test_concurrency_is_bounded_by_window(self, chunks, fake_decoder_factory):
        decoder = fake_decoder_factory(chunks, delay=0.05)
        _decode([tag_image(i) for i in range(10)], decoder, max_concurrency=3)
        assert 1 <= decoder.max_in_flight <= 3

    def test_invalid_frames_skipped_by_default(self, chunks, fake_decoder_factory):
        decoder = fake_decoder_factory(chunks, fail_on={2, 5})
        frames = _decode([tag_image(i) for i in range(10)], decoder)
        assert [f.frame_index for f in frames] == [0, 1, 3, 4, 6, 7, 8, 9]

    def test_invalid_frames_kept_as_placeholders(self, chunks, fake_decoder_factory):
        decoder = fake_decoder_factory(chunks, fail_on={2})
        frames = _decode([tag_image(i) for i in range(4)], decoder, skip_invalid_frames=False)
        assert len(frames) == 4
        bad = frames[2]
        assert not bad.is_valid
        assert bad.failure == 'FrameDetectionFailure'
        assert bad.chunk_metadata is None

    def test_crashing_decoder_only_fails_its_frame(self, chunks, fake_decoder_factory):
        decoder = fake_decoder_factory(chunks, raise_on={1})
        frames = _decode([tag_image(i) for i in range(3)], decoder, skip_invalid_frames=False)
        assert [f.is_valid for f in frames] == [True, False, True]
        assert 'detector crashed' in frames[1].error

    def test_progress_reports_every_frame(self, chunks, fake_decoder_factory):
        seen = []
        decoder = fake_decoder_factory(chunks, fail_on={4})
        _decode([tag_image(i) for i in range(6)], decoder,
                progress_callback=lambda done, total, frame: seen.append((done, total, frame.frame_index)))
        assert [s[0] for s in seen] == [1, 2, 3, 4, 5, 6]
        assert {s[1] for s in seen} == {6}
        assert sorted(s[2] for s in seen) == list(range(6))

    def test_failing_progress_callback_does_not_stop_batch(self, chunks, fake_decoder_factory):
        def explode(done, total, frame):
            raise ValueError('ui went away')
        frames = _decode([tag_image(i) for i in range(5)], fake_decoder_factory(chunks),
                         progress_callback=explode)
        assert len(frames) == 5

    def test_hung_decode_times_out_alone(self, chunks, fake_decoder_factory):
        decoder = fake_decoder_factory(chunks, hang_on={3})
        images = [tag_image(i) for i in range(10)]
        start = time.monotonic()
        frames = _decode(images, decoder, timeout_ms=300, skip_invalid_frames=False)
        elapsed = time.monotonic() - start
        decoder.release.set()

        assert elapsed < 3
        assert len(frames) == 10
        assert [f.frame_index for f in frames if not f.is_valid] == [3]
        assert frames[3].failure == 'DecodeTimeout'
        assert sum(f.is_valid for f in frames) == 9

    def test_empty_input(self, fake_decoder_factory):
        assert _decode([], fake_decoder_factory([])) == []


def test_options_validated():
    with pytest.raises(ValueError):
        BatchDecodingOptions(max_concurrency=0)
    with pytest.raises(ValueError):
        BatchDecodingOptions(timeout_ms=0)


HUNG_DECODE_SCRIPT = textwrap.dedent("""
    import asyncio, threading
    from memory_frames.core.batch import BatchDecodingOptions, batch_decode
    from memory_frames.core.pixels import PixelGrid

    def never_returns(image):
        threading.Event().wait()

    frames = asyncio.run(batch_decode([PixelGrid(1, 1, bytes(4))],
                                      BatchDecodingOptions(timeout_ms=200, skip_invalid_frames=False),
                                      never_returns))
    print(frames[0].failure)
""")


def test_hung_decode_does_not_block_interpreter_exit():
    root = Path(__file__).resolve().parents[1]
    env = dict(os.environ, PYTHONPATH=os.pathsep.join(filter(None, [str(root), os.environ.get('PYTHONPATH')])))
    proc = subprocess.run([sys.executable, '-c', HUNG_DECODE_SCRIPT], cwd=root, env=env,
                          capture_output=True, text=True, timeout=30)
    assert proc.returncode == 0, proc.stderr
    assert proc.stdout.strip() == 'DecodeTimeout'
