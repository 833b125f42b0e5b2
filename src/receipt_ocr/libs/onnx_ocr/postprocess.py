"""Postprocessing modules for OCR outputs."""

import logging
from typing import List, Sequence, Tuple

import cv2
import numpy as np

from .results import QuadBox
from .utils import get_mini_boxes, order_points_clockwise

logger = logging.getLogger(__name__)


class ComponentBoxPostProcess:
    """Post-processing for DB-style text detection.

    Converts a probability map into rotated boxes: the map is binarized,
    split into 8-connected components, each component is scored by its
    mean probability and boxed by a principal-axis rectangle.
    """

    def __init__(
        self,
        thresh=0.4,
        box_thresh=0.6,
        min_area=10,
        min_side=5.0,
        max_candidates=1000,
    ):
        """Initialize the post-processor.

        Args:
            thresh: Binarization threshold for probability map
            box_thresh: Minimum mean probability of a component
            min_area: Minimum component size in map pixels
            min_side: Minimum shorter box side in source pixels
            max_candidates: Maximum number of components examined
        """
        self.thresh = thresh
        self.box_thresh = box_thresh
        self.min_area = min_area
        self.min_side = min_side
        self.max_candidates = max_candidates

    def __call__(self, pred: np.ndarray, shape: Sequence[float]) -> Tuple[List[QuadBox], List[float]]:
        """Convert a probability map to boxes.

        Args:
            pred: (H, W) probability map
            shape: [src_h, src_w, ratio_h, ratio_w] from DetResizeForTest

        Returns:
            Tuple of (boxes in source coordinates, component scores)
        """
        if pred.ndim != 2:
            raise ValueError(f"Expected 2D probability map, got shape {pred.shape}")

        _, _, ratio_h, ratio_w = shape
        bitmap = (pred > self.thresh).astype(np.uint8)

        num_labels, labels, stats, _ = cv2.connectedComponentsWithStats(
            bitmap, connectivity=8, ltype=cv2.CV_32S
        )
        if num_labels <= 1:
            return [], []

        areas = stats[:, cv2.CC_STAT_AREA]
        sums = np.bincount(labels.ravel(), weights=pred.ravel().astype(np.float64), minlength=num_labels)
        means = sums / np.maximum(areas, 1)

        # Group member pixel coordinates by label
        ys, xs = np.nonzero(labels)
        member_labels = labels[ys, xs]
        order = np.argsort(member_labels, kind="stable")
        ys, xs, member_labels = ys[order], xs[order], member_labels[order]
        starts = np.searchsorted(member_labels, np.arange(num_labels + 1))

        boxes = []
        scores = []
        for label in range(1, min(num_labels, self.max_candidates + 1)):
            if areas[label] < self.min_area:
                continue

            score = float(means[label])
            if score < self.box_thresh:
                logger.debug("Dropping component %d: score %.3f", label, score)
                continue

            lo, hi = starts[label], starts[label + 1]
            points = np.stack([xs[lo:hi], ys[lo:hi]], axis=1)
            # Half a pixel per side covers the pixels, not just their centers
            box, _ = get_mini_boxes(points, margin=0.5)

            box[:, 0] = box[:, 0] / ratio_w
            box[:, 1] = box[:, 1] / ratio_h
            quad = QuadBox.from_array(order_points_clockwise(box))

            if min(quad.width, quad.height) < self.min_side:
                logger.debug("Dropping component %d: box too thin", label)
                continue

            boxes.append(quad)
            scores.append(score)

        return boxes, scores


class CTCLabelDecode:
    """CTC decoding for text recognition."""

    def __init__(self, character: Sequence[str]):
        """Initialize CTC decoder.

        Args:
            character: Vocabulary; class ``i`` maps to ``character[i - 1]``
                and class 0 is the blank
        """
        self.character = ["blank"] + list(character)

    def __call__(self, preds) -> List[Tuple[str, float]]:
        """Decode CTC predictions to text.

        Args:
            preds: Prediction array [batch, time, num_classes] or [time, num_classes]

        Returns:
            List of (text, confidence) tuples
        """
        if isinstance(preds, (tuple, list)):
            preds = preds[-1]
        preds = np.asarray(preds)
        if preds.ndim == 2:
            preds = preds[np.newaxis]

        preds_idx = preds.argmax(axis=2)
        preds_prob = preds.max(axis=2)
        return self.decode(preds_idx, preds_prob, is_remove_duplicate=True)

    def decode(self, text_index, text_prob=None, is_remove_duplicate=False):
        """Convert text indices to strings."""
        result_list = []
        ignored_tokens = [0]  # CTC blank token
        batch_size = len(text_index)

        for batch_idx in range(batch_size):
            indices = np.asarray(text_index[batch_idx])
            selection = np.ones(len(indices), dtype=bool)

            if is_remove_duplicate:
                selection[1:] = indices[1:] != indices[:-1]

            for ignored_token in ignored_tokens:
                selection &= indices != ignored_token

            # Classes the vocabulary does not cover are dropped
            selection &= indices < len(self.character)

            char_list = [self.character[text_id] for text_id in indices[selection]]

            if text_prob is not None:
                conf_list = np.asarray(text_prob[batch_idx], dtype=np.float64)[selection]
            else:
                conf_list = np.ones(int(selection.sum()))

            text = "".join(char_list)
            score = float(np.mean(conf_list)) if len(conf_list) else 0.0
            result_list.append((text, score))

        return result_list
