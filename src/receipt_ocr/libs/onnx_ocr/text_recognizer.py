"""
Text Recognition Module - Stage 2 of OCR Pipeline

Recognizes text from rotated text regions, one region at a time.
"""

from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

from .config import OcrParams, RecognizerConfig
from .errors import InferenceError, ModelNotInitialized
from .image import ImageBuffer
from .onnx_base import ONNXInferenceBase
from .postprocess import CTCLabelDecode
from .results import QuadBox
from .utils import get_rotate_crop_image


class TextRecognizer:
    """Text recognition module.

    Crops each region upright, feeds it at a fixed height and variable
    width, and greedily decodes the CTC output.
    """

    def __init__(
        self,
        session: Optional[ONNXInferenceBase],
        character: Sequence[str],
        config: RecognizerConfig = None,
    ):
        """Initialize text recognizer.

        Args:
            session: Loaded recognition model session (rec.onnx)
            character: Vocabulary from the character dictionary
            config: Recognizer configuration (uses defaults if None)
        """
        if config is None:
            config = RecognizerConfig()

        self.config = config
        self.session = session
        self.postprocess_op = CTCLabelDecode(character)

    @staticmethod
    def padding_for(box: QuadBox, padding_ratio: float) -> int:
        return max(4, int(round(min(box.width, box.height) * padding_ratio)))

    def resize_norm_img(self, img: np.ndarray) -> np.ndarray:
        """Resize to the model height and normalize to [-1, 1].

        Args:
            img: Text crop (H, W, C) in RGB

        Returns:
            Tensor (1, 3, imgH, W)
        """
        imgH = self.config.rec_image_height
        h, w = img.shape[:2]
        resized_w = max(1, int(round(w * imgH / float(h))))

        resized_image = cv2.resize(img[:, :, :3], (resized_w, imgH))
        resized_image = resized_image.astype("float32")
        resized_image = resized_image.transpose((2, 0, 1)) / 255
        resized_image -= 0.5
        resized_image /= 0.5
        return resized_image[np.newaxis, :]

    def recognize_single(self, img: np.ndarray) -> Tuple[str, float]:
        """Recognize text in a single upright crop.

        Args:
            img: Text image patch (RGB)

        Returns:
            Tuple of (text, confidence)
        """
        if self.session is None:
            raise ModelNotInitialized("Recognition model is not loaded")

        norm_img = self.resize_norm_img(img)
        input_feed = self.session.get_input_feed(norm_img)
        outputs = self.session.run(input_feed)

        preds = np.asarray(outputs[0])
        if preds.ndim == 3 and preds.shape[0] == 1:
            preds = preds[0]
        if preds.ndim != 2:
            raise InferenceError(f"Recognition output has unexpected shape {np.shape(outputs[0])}")

        return self.postprocess_op(preds)[0]

    def recognize(self, image: ImageBuffer, box: QuadBox, params: OcrParams = None) -> Tuple[str, float]:
        """Crop ``box`` out of ``image`` and recognize it.

        Args:
            image: Image the box coordinates refer to
            box: Detected text region
            params: Padding ratio (defaults if None)

        Returns:
            Tuple of (text, confidence)
        """
        if params is None:
            params = OcrParams()
        padding = self.padding_for(box, params.padding_ratio)
        crop = get_rotate_crop_image(image.pixels, box, padding)
        return self.recognize_single(crop)

    def __repr__(self):
        return f"TextRecognizer(session={self.session!r}, vocab={len(self.postprocess_op.character) - 1})"
