"""Utility functions for OCR pipeline."""

import math
from typing import Tuple

import cv2
import numpy as np
from PIL import Image, ImageDraw, ImageFont

from .results import OcrResult, QuadBox

RotatedRect = Tuple[Tuple[float, float], Tuple[float, float], float]


def get_min_area_rect(points: np.ndarray) -> RotatedRect:
    """Fit a rotated rectangle to a point set using its principal axes.

    Args:
        points: (N, 2) array of (x, y) coordinates

    Returns:
        ((cx, cy), (width, height), angle) where ``width`` is measured along
        the dominant axis and ``angle`` (degrees, in (-90, 90]) is that
        axis's direction
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    if len(pts) == 0:
        raise ValueError("Cannot fit a rectangle to an empty point set")

    mean = pts.mean(axis=0)
    d = pts - mean
    cxx = float(np.mean(d[:, 0] * d[:, 0]))
    cyy = float(np.mean(d[:, 1] * d[:, 1]))
    cxy = float(np.mean(d[:, 0] * d[:, 1]))

    # Dominant eigenvector of the 2x2 covariance
    theta = 0.5 * math.atan2(2.0 * cxy, cxx - cyy)
    cos_t, sin_t = math.cos(theta), math.sin(theta)

    u = d[:, 0] * cos_t + d[:, 1] * sin_t
    v = -d[:, 0] * sin_t + d[:, 1] * cos_t
    u_min, u_max = float(u.min()), float(u.max())
    v_min, v_max = float(v.min()), float(v.max())

    uc = (u_min + u_max) / 2.0
    vc = (v_min + v_max) / 2.0
    cx = float(mean[0] + uc * cos_t - vc * sin_t)
    cy = float(mean[1] + uc * sin_t + vc * cos_t)

    return (cx, cy), (u_max - u_min, v_max - v_min), math.degrees(theta)


def box_points(rect: RotatedRect) -> np.ndarray:
    """Corners of a rotated rectangle as a (4, 2) float32 array."""
    (cx, cy), (w, h), angle = rect
    theta = math.radians(angle)
    cos_t, sin_t = math.cos(theta), math.sin(theta)
    local = np.array([
        [-w / 2.0, -h / 2.0],
        [w / 2.0, -h / 2.0],
        [w / 2.0, h / 2.0],
        [-w / 2.0, h / 2.0],
    ])
    rot = np.array([[cos_t, -sin_t], [sin_t, cos_t]])
    return (local @ rot.T + np.array([cx, cy])).astype(np.float32)


def order_points_clockwise(pts: np.ndarray) -> np.ndarray:
    """Order rectangle corners clockwise (y down), starting at the top-left.

    The first edge is the one whose direction lies in [-45, 45) degrees,
    so it points rightwards along horizontal-ish text.
    """
    pts = np.asarray(pts, dtype=np.float32).reshape(4, 2)

    # Shoelace sum is negative for counter-clockwise order in image space
    x, y = pts[:, 0], pts[:, 1]
    area = np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y)
    if area < 0:
        pts = pts[::-1]

    for start in range(4):
        dx, dy = pts[(start + 1) % 4] - pts[start]
        angle = math.degrees(math.atan2(dy, dx))
        if -45.0 <= angle < 45.0:
            return np.roll(pts, -start, axis=0)
    return pts


def get_mini_boxes(points: np.ndarray, margin: float = 0.0) -> Tuple[np.ndarray, float]:
    """Rotated bounding rectangle of a point set, grown by ``margin`` per side.

    Returns:
        Tuple of (ordered 4x2 corners, length of the shorter side)
    """
    center, (w, h), angle = get_min_area_rect(points)
    rect = (center, (w + 2 * margin, h + 2 * margin), angle)
    box = order_points_clockwise(box_points(rect))
    return box, min(rect[1])


def get_rotate_crop_image(img: np.ndarray, box: QuadBox, padding: float = 0.0) -> np.ndarray:
    """Crop a rotated text region so that the text runs horizontally.

    The image is rotated about the box center by the box angle and the
    box, grown by ``padding`` along its own axes, is cut out.

    Args:
        img: Source image (H, W, C)
        box: Text region
        padding: Pixels added on every side of the box

    Returns:
        Cropped and de-rotated text image
    """
    cx, cy = box.center
    img_crop_width = max(1, int(round(box.width + 2 * padding)))
    img_crop_height = max(1, int(round(box.height + 2 * padding)))

    M = cv2.getRotationMatrix2D((cx, cy), box.angle, 1.0)
    M[0, 2] += img_crop_width / 2.0 - cx
    M[1, 2] += img_crop_height / 2.0 - cy

    dst_img = cv2.warpAffine(
        img,
        M,
        (img_crop_width, img_crop_height),
        flags=cv2.INTER_CUBIC,
        borderMode=cv2.BORDER_REPLICATE,
    )

    dst_img_height, dst_img_width = dst_img.shape[0:2]
    if dst_img_height * 1.0 / dst_img_width >= 1.5:
        dst_img = np.ascontiguousarray(np.rot90(dst_img))

    return dst_img


def draw_ocr_result(
    image: np.ndarray,
    result: OcrResult,
    font_path: str = None,
) -> Image.Image:
    """Draw recognized regions and their text on an RGB image.

    Args:
        image: Source image (H, W, 3|4) in RGB order
        result: OCR result whose boxes are in ``image`` coordinates
        font_path: Optional TrueType font for the labels

    Returns:
        Annotated PIL image
    """
    img = Image.fromarray(np.ascontiguousarray(image[:, :, :3]))
    draw = ImageDraw.Draw(img)

    font = None
    if font_path:
        try:
            font = ImageFont.truetype(font_path, 18)
        except OSError:
            font = None
    if font is None:
        font = ImageFont.load_default()

    for region in result.regions:
        points = [tuple(p) for p in region.box.as_array().astype(np.int32).tolist()]
        draw.polygon(points, outline=(0, 200, 0))
        x, y = points[0]
        draw.text((x, max(0, y - 20)), f"{region.text} ({region.score:.2f})", fill=(220, 0, 0), font=font)

    return img
