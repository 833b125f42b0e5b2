"""
Text Detection Module - Stage 1 of OCR Pipeline

Detects text regions using a DB-style probability map, connected
components and principal-axis rectangles.
"""

import logging
from typing import List, Optional

import numpy as np

from .config import DetectorConfig, OcrParams
from .errors import InferenceError, ModelNotInitialized
from .image import ImageBuffer
from .onnx_base import ONNXInferenceBase
from .postprocess import ComponentBoxPostProcess
from .preprocess import create_operators, transform
from .results import QuadBox

logger = logging.getLogger(__name__)


class TextDetector:
    """Text detection module.

    Takes a preprocessed image and returns rotated text boxes in that
    image's pixel coordinates. Box order follows component discovery and
    carries no meaning.
    """

    def __init__(
        self,
        session: Optional[ONNXInferenceBase],
        config: DetectorConfig = None,
    ):
        """Initialize text detector.

        Args:
            session: Loaded detection model session (det.onnx)
            config: Detector configuration (uses defaults if None)
        """
        if config is None:
            config = DetectorConfig()

        self.config = config
        self.session = session

    def preprocess(self, image: np.ndarray, limit_side_len: int) -> tuple:
        """Resize and normalize a single image for detection.

        Returns:
            Tuple of (CHW float32 image, [src_h, src_w, ratio_h, ratio_w])
        """
        ops = create_operators([
            {"DetResizeForTest": {"limit_side_len": limit_side_len}},
            {
                "NormalizeImage": {
                    "std": [0.229, 0.224, 0.225],
                    "mean": [0.485, 0.456, 0.406],
                    "scale": 1.0 / 255.0,
                }
            },
            {"ToCHWImage": None},
            {"KeepKeys": {"keep_keys": ["image", "shape"]}},
        ])
        data = {"image": image}
        return transform(data, ops)

    def detect(self, image: ImageBuffer, params: OcrParams = None) -> List[QuadBox]:
        """Detect text in a single image.

        Args:
            image: Input image (RGB)
            params: Thresholds and resize limit (defaults if None)

        Returns:
            List of boxes in ``image`` coordinates

        Raises:
            ModelNotInitialized: If no session is loaded
            InferenceError: If the model fails or returns an unexpected shape
        """
        if self.session is None:
            raise ModelNotInitialized("Detection model is not loaded")
        if params is None:
            params = OcrParams()

        img, shape_info = self.preprocess(image.pixels, params.limit_side_len)
        _, det_h, det_w = img.shape

        # Add batch dimension
        img = np.expand_dims(img, axis=0).astype(np.float32)

        input_feed = self.session.get_input_feed(img)
        outputs = self.session.run(input_feed)
        prob_map = self._squeeze_map(outputs[0], det_h, det_w)

        postprocess_op = ComponentBoxPostProcess(
            thresh=params.det_db_thresh,
            box_thresh=params.det_db_box_thresh,
            min_area=self.config.min_component_area,
            min_side=self.config.min_box_side,
            max_candidates=self.config.max_candidates,
        )
        boxes, _ = postprocess_op(prob_map, shape_info)
        logger.debug("Detection map %dx%d produced %d boxes", det_w, det_h, len(boxes))
        return boxes

    @staticmethod
    def _squeeze_map(output, height: int, width: int) -> np.ndarray:
        prob_map = np.asarray(output, dtype=np.float32)
        while prob_map.ndim > 2 and prob_map.shape[0] == 1:
            prob_map = prob_map[0]
        if prob_map.shape != (height, width):
            raise InferenceError(
                f"Detection output shape {np.shape(output)} does not match input {height}x{width}"
            )
        return prob_map

    def __repr__(self):
        return f"TextDetector(session={self.session!r})"
