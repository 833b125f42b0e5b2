"""Decoded image buffers and the image source codec."""

import io
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union

import cv2
import numpy as np
from PIL import Image, ImageOps


@dataclass(frozen=True, eq=False)
class ImageBuffer:
    """Owned, read-only pixel buffer in row-major (H, W, C) layout.

    Channels are interleaved RGB or RGBA. Every transformation returns a
    new buffer; ``close`` releases the pixels once a stage is done with them.
    """
    data: np.ndarray

    def __post_init__(self):
        arr = np.ascontiguousarray(self.data, dtype=np.uint8)
        if arr.ndim != 3 or arr.shape[2] not in (3, 4):
            raise ValueError(f"Expected (H, W, 3|4) pixel array, got shape {arr.shape}")
        if arr.shape[0] == 0 or arr.shape[1] == 0:
            raise ValueError("Image must have non-zero width and height")
        arr.setflags(write=False)
        object.__setattr__(self, "data", arr)
        object.__setattr__(self, "_closed", False)

    @property
    def pixels(self) -> np.ndarray:
        if self._closed:
            raise ValueError("Image buffer has been closed")
        return self.data

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def channels(self) -> int:
        return self.pixels.shape[2]

    @property
    def stride(self) -> int:
        return self.width * self.channels

    @property
    def mode(self) -> str:
        return "RGBA" if self.channels == 4 else "RGB"

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self):
        """Release the pixel array."""
        object.__setattr__(self, "_closed", True)
        object.__setattr__(self, "data", None)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def to_rgb(self) -> "ImageBuffer":
        if self.channels == 3:
            return ImageBuffer(self.pixels.copy())
        return ImageBuffer(self.pixels[:, :, :3])

    def resize(self, width: int, height: int, interpolation: int = cv2.INTER_LINEAR) -> "ImageBuffer":
        resized = cv2.resize(self.pixels, (int(width), int(height)), interpolation=interpolation)
        return ImageBuffer(resized)

    def crop(self, x: int, y: int, width: int, height: int) -> "ImageBuffer":
        """Crop an axis-aligned region, clipped to the image bounds."""
        x0 = min(max(int(x), 0), self.width - 1)
        y0 = min(max(int(y), 0), self.height - 1)
        x1 = min(max(int(x + width), x0 + 1), self.width)
        y1 = min(max(int(y + height), y0 + 1), self.height)
        return ImageBuffer(self.pixels[y0:y1, x0:x1].copy())

    def rotate(self, angle: float, center: Tuple[float, float] = None) -> "ImageBuffer":
        """Rotate counter-clockwise by ``angle`` degrees, keeping the canvas size."""
        if center is None:
            center = ((self.width - 1) / 2.0, (self.height - 1) / 2.0)
        M = cv2.getRotationMatrix2D(center, angle, 1.0)
        rotated = cv2.warpAffine(
            self.pixels,
            M,
            (self.width, self.height),
            flags=cv2.INTER_LINEAR,
            borderMode=cv2.BORDER_REPLICATE,
        )
        return ImageBuffer(rotated)

    def to_pil(self) -> Image.Image:
        return Image.fromarray(np.array(self.pixels))

    def to_png_bytes(self) -> bytes:
        buffer = io.BytesIO()
        self.to_pil().save(buffer, format="PNG")
        return buffer.getvalue()

    def __repr__(self):
        if self._closed:
            return "ImageBuffer(closed)"
        return f"ImageBuffer({self.width}x{self.height}, {self.mode})"


ImageSource = Union[ImageBuffer, np.ndarray, Image.Image, bytes, bytearray, memoryview, str, Path]


def _from_pil(image: Image.Image) -> ImageBuffer:
    if image.mode != "RGBA":
        image = image.convert("RGB")
    return ImageBuffer(np.asarray(image))


def load_image(source: ImageSource) -> ImageBuffer:
    """Decode an image source into an ``ImageBuffer``.

    Args:
        source: ImageBuffer (returned unchanged), numpy array (H, W) or
            (H, W, 3|4) in RGB order, PIL image, encoded image bytes, or a
            path to an image file

    Returns:
        ImageBuffer with RGB or RGBA pixels
    """
    if isinstance(source, ImageBuffer):
        return source

    if isinstance(source, np.ndarray):
        arr = source
        if arr.ndim == 2:
            arr = np.stack([arr] * 3, axis=-1)
        return ImageBuffer(np.array(arr, dtype=np.uint8, copy=True))

    if isinstance(source, Image.Image):
        return _from_pil(source)

    if isinstance(source, (bytes, bytearray, memoryview)):
        with Image.open(io.BytesIO(bytes(source))) as img:
            return _from_pil(ImageOps.exif_transpose(img))

    if isinstance(source, (str, Path)):
        with Image.open(source) as img:
            return _from_pil(ImageOps.exif_transpose(img))

    raise TypeError(f"Unsupported image source: {type(source).__name__}")
