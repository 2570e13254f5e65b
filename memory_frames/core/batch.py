import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .decoding_qr import DecodedFrame, DecodeResult, decode_frame
from .errors import DecodeTimeout
from .pixels import PixelGrid

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 4
DEFAULT_TIMEOUT_MS = 5000

ProgressCallback = Callable[[int, int, DecodedFrame], None]
FrameDecoder = Callable[[PixelGrid], DecodeResult]


@dataclass
class BatchDecodingOptions:
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    skip_invalid_frames: bool = True
    progress_callback: Optional[ProgressCallback] = None

    def __post_init__(self):
        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {self.max_concurrency}")
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}")


def _settle(future: asyncio.Future, result: Optional[DecodeResult], error: Optional[BaseException]):
    if future.done():
        return  # already timed out
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


def _start_decode(loop: asyncio.AbstractEventLoop, frame_index: int, image: PixelGrid,
                  decoder: FrameDecoder) -> asyncio.Future:
    """Run decoder on a daemon thread; a decode that never returns cannot block interpreter exit."""
    future = loop.create_future()

    def work():
        result, error = None, None
        try:
            result = decoder(image)
        except Exception as e:
            error = e
        try:
            loop.call_soon_threadsafe(_settle, future, result, error)
        except RuntimeError:
            # loop closed while this frame was still decoding; its timeout was already reported
            logger.debug("Frame %d finished after its event loop closed", frame_index)

    threading.Thread(target=work, name=f"qr-decode-{frame_index}", daemon=True).start()
    return future


async def _decode_one(frame_index: int, image: PixelGrid, decoder: FrameDecoder, timeout_ms: int) -> DecodedFrame:
    loop = asyncio.get_running_loop()
    try:
        result = await asyncio.wait_for(_start_decode(loop, frame_index, image, decoder), timeout_ms / 1000)
    except asyncio.TimeoutError:
        logger.warning("Frame %d: decode exceeded %d ms", frame_index, timeout_ms)
        return DecodedFrame.invalid(frame_index, f"Decode timeout after {timeout_ms} ms", DecodeTimeout.__name__)
    except Exception as e:
        # a crashing decode is a frame failure, the batch keeps going
        logger.warning("Frame %d: decoder raised %s: %s", frame_index, type(e).__name__, e)
        return DecodedFrame.invalid(frame_index, f"Decoding failed: {e}", type(e).__name__)
    return DecodedFrame.from_result(frame_index, result)


def _report(callback: Optional[ProgressCallback], processed: int, total: int, frame: DecodedFrame):
    if callback is None:
        return
    try:
        callback(processed, total, frame)
    except Exception:
        logger.exception("Progress callback failed at %d/%d", processed, total)


async def batch_decode(images: Sequence[PixelGrid], options: Optional[BatchDecodingOptions] = None,
                       decoder: FrameDecoder = decode_frame) -> List[DecodedFrame]:
    """Decode stills in fixed windows of max_concurrency.

    Each window runs concurrently and finishes before the next starts. Every
    decode races its own timeout; a timeout or crash marks only that frame
    invalid. Output is in source order.
    """
    opts = options or BatchDecodingOptions()
    total = len(images)
    processed = 0
    results: List[DecodedFrame] = []

    for start in range(0, total, opts.max_concurrency):
        window = images[start:start + opts.max_concurrency]
        tasks = [_decode_one(start + i, img, decoder, opts.timeout_ms) for i, img in enumerate(window)]
        done = []
        for next_done in asyncio.as_completed(tasks):
            frame = await next_done
            processed += 1
            _report(opts.progress_callback, processed, total, frame)
            done.append(frame)

        done.sort(key=lambda f: f.frame_index)
        results.extend(f for f in done if f.is_valid or not opts.skip_invalid_frames)

    valid = sum(1 for f in results if f.is_valid)
    logger.info("Batch decode: %d/%d frames valid", valid, total)
    return results
