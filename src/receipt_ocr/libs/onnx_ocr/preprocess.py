"""Preprocessing operations for OCR."""

import math
from typing import Dict, List, Tuple

import cv2
import numpy as np

from .config import OcrParams
from .image import ImageBuffer

SHARPEN_KERNEL = np.array([
    [0, -1, 0],
    [-1, 5, -1],
    [0, -1, 0],
], dtype=np.float32)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ---------------------------------------------------------------------------
# Image enhancement (runs before detection, also exposed for previews)
# ---------------------------------------------------------------------------

def resize_to_limit(image: ImageBuffer, limit_side_len: int) -> ImageBuffer:
    """Downscale so the longer side equals ``limit_side_len``.

    Images already within the limit are returned unchanged.
    """
    longest = max(image.width, image.height)
    if longest <= limit_side_len:
        return image
    ratio = float(limit_side_len) / longest
    width = max(1, _round_half_up(image.width * ratio))
    height = max(1, _round_half_up(image.height * ratio))
    return image.resize(width, height, interpolation=cv2.INTER_LINEAR)


def to_luminance(pixels: np.ndarray) -> np.ndarray:
    """Compute rounded BT.601 luma (H, W) uint8 from RGB(A) pixels."""
    rgb = pixels[:, :, :3].astype(np.float64)
    gray = 0.299 * rgb[:, :, 0] + 0.587 * rgb[:, :, 1] + 0.114 * rgb[:, :, 2]
    return np.clip(np.floor(gray + 0.5), 0, 255).astype(np.uint8)


def enhance_contrast(gray: np.ndarray, contrast: float) -> np.ndarray:
    """Histogram-stretch to the full range, then apply gain around mid-gray."""
    lo = int(gray.min())
    hi = int(gray.max())
    value_range = max(hi - lo, 1)
    stretched = (gray.astype(np.float64) - lo) / value_range * 255.0
    enhanced = np.clip((stretched - 128.0) * contrast + 128.0, 0, 255)
    return np.rint(enhanced).astype(np.uint8)


def sharpen(pixels: np.ndarray) -> np.ndarray:
    """3x3 sharpening on interior pixels; border pixels are left untouched."""
    out = cv2.filter2D(pixels, -1, SHARPEN_KERNEL, borderType=cv2.BORDER_REPLICATE)
    out[0, :] = pixels[0, :]
    out[-1, :] = pixels[-1, :]
    out[:, 0] = pixels[:, 0]
    out[:, -1] = pixels[:, -1]
    return out


def preprocess_image(image: ImageBuffer, params: OcrParams) -> ImageBuffer:
    """Resize, convert to grayscale and enhance an image for detection.

    Args:
        image: Source image (RGB or RGBA)
        params: Resize limit, contrast gain and enhancement toggles

    Returns:
        New 3-channel RGB image; color is discarded
    """
    resized = resize_to_limit(image, params.limit_side_len)

    gray = to_luminance(resized.pixels)
    if params.enable_contrast:
        gray = enhance_contrast(gray, params.preprocess_contrast)

    rgb = np.repeat(gray[:, :, np.newaxis], 3, axis=2)

    if params.enable_sharpening:
        rgb = sharpen(rgb)

    if resized is not image:
        resized.close()
    return ImageBuffer(rgb)


# ---------------------------------------------------------------------------
# Detector input operators
# ---------------------------------------------------------------------------

class DetResizeForTest:
    """Resize image for text detection.

    Both sides become multiples of 32 and the longer side stays within
    ``limit_side_len``.
    """

    def __init__(self, limit_side_len=2000, **kwargs):
        self.limit_side_len = limit_side_len

    def _snap(self, length: int, limit: int) -> int:
        snapped = max(_round_half_up(length / 32.0) * 32, 32)
        if snapped > limit and limit >= 32:
            snapped = max((limit // 32) * 32, 32)
        return snapped

    def __call__(self, data: Dict) -> Dict:
        img = data['image']
        src_h, src_w = img.shape[:2]

        if max(src_h, src_w) > self.limit_side_len:
            ratio = float(self.limit_side_len) / max(src_h, src_w)
        else:
            ratio = 1.0

        resize_h = self._snap(_round_half_up(src_h * ratio), self.limit_side_len)
        resize_w = self._snap(_round_half_up(src_w * ratio), self.limit_side_len)

        img = cv2.resize(img, (resize_w, resize_h))

        ratio_h = resize_h / float(src_h)
        ratio_w = resize_w / float(src_w)

        data['image'] = img
        data['shape'] = np.array([src_h, src_w, ratio_h, ratio_w])
        return data


class NormalizeImage:
    """Normalize image values."""

    def __init__(self, scale=1.0 / 255.0, mean=(0.485, 0.456, 0.406),
                 std=(0.229, 0.224, 0.225), **kwargs):
        self.scale = np.float32(scale)
        self.mean = np.array(mean).reshape((1, 1, 3)).astype('float32')
        self.std = np.array(std).reshape((1, 1, 3)).astype('float32')

    def __call__(self, data: Dict) -> Dict:
        img = data['image'][:, :, :3].astype('float32')
        img = img * self.scale
        data['image'] = (img - self.mean) / self.std
        return data


class ToCHWImage:
    """Convert image from HWC to CHW format."""

    def __call__(self, data: Dict) -> Dict:
        img = data['image']
        data['image'] = img.transpose((2, 0, 1))
        return data


class KeepKeys:
    """Keep only specified keys in data dict."""

    def __init__(self, keep_keys: List[str], **kwargs):
        self.keep_keys = keep_keys

    def __call__(self, data: Dict) -> Tuple:
        """Return tuple of (image, shape_list) for detection."""
        return tuple(data[key] for key in self.keep_keys)


def create_operators(op_param_list: List[Dict]):
    """Create preprocessing operators from config list.

    Args:
        op_param_list: List of dicts like [{"OpName": {params}}]

    Returns:
        List of operator instances
    """
    ops = []
    for operator in op_param_list:
        assert isinstance(operator, dict) and len(operator) == 1
        op_name = list(operator)[0]
        param = {} if operator[op_name] is None else operator[op_name]
        op = globals()[op_name](**param)
        ops.append(op)
    return ops


def transform(data: Dict, ops: List) -> Tuple:
    """Apply preprocessing operators sequentially.

    Args:
        data: Dictionary containing 'image' key
        ops: List of operator instances

    Returns:
        Tuple of (processed_image, shape_list) or None if error
    """
    for op in ops:
        data = op(data)
        if data is None:
            return None
    return data
