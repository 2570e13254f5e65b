from dataclasses import dataclass

import numpy as np
from PIL import Image


@dataclass(frozen=True)
class PixelGrid:
    """RGBA still image exchanged at the frame boundary.

    data holds width * height * 4 bytes, row-major.
    """
    width: int
    height: int
    data: bytes

    def __post_init__(self):
        expected = self.width * self.height * 4
        if len(self.data) != expected:
            raise ValueError(f"RGBA buffer for {self.width}x{self.height} needs {expected} bytes, got {len(self.data)}")

    @classmethod
    def from_array(cls, arr: np.ndarray) -> 'PixelGrid':
        """Build from an (H, W) gray, (H, W, 3) RGB or (H, W, 4) RGBA uint8 array."""
        arr = np.asarray(arr, dtype=np.uint8)
        if arr.ndim == 2:
            arr = np.dstack([arr, arr, arr, np.full_like(arr, 255)])
        elif arr.ndim == 3 and arr.shape[2] == 3:
            arr = np.dstack([arr, np.full(arr.shape[:2], 255, dtype=np.uint8)])
        elif not (arr.ndim == 3 and arr.shape[2] == 4):
            raise ValueError(f"Unsupported pixel array shape: {arr.shape}")
        h, w = arr.shape[:2]
        return cls(width=w, height=h, data=np.ascontiguousarray(arr).tobytes())

    @classmethod
    def from_image(cls, img: Image.Image) -> 'PixelGrid':
        img = img.convert('RGBA')
        w, h = img.size
        return cls(width=w, height=h, data=img.tobytes())

    def to_array(self) -> np.ndarray:
        # writable copy; cv2 and zxing both want owned, contiguous buffers
        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width, 4).copy()

    def to_image(self) -> Image.Image:
        return Image.frombytes('RGBA', (self.width, self.height), self.data)
