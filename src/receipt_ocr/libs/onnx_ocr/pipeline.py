"""
High-level OCR Pipeline

Owns the model sessions and runs
preprocess -> detect -> recognize (per region) -> assemble lines.
"""

import enum
import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional, Union

from .config import DetectorConfig, OcrParams, RecognizerConfig
from .dictionary import load_character_dict
from .errors import InferenceError, ModelLoadError, ModelNotInitialized
from .image import ImageBuffer, ImageSource, load_image
from .line_assembler import build_result
from .onnx_base import ONNXInferenceBase
from .preprocess import preprocess_image
from .results import OcrResult, QuadBox, TextRegion
from .text_detector import TextDetector
from .text_recognizer import TextRecognizer

logger = logging.getLogger(__name__)

ParamsLike = Union[OcrParams, Mapping[str, Any], None]


class PipelineState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class OCRPipeline:
    """
    Complete OCR pipeline combining detection and recognition.

    Models are loaded lazily on first use and reused across calls. A
    pipeline whose loading failed stays failed; construct a new one to
    retry.

    Usage:
        ocr = OCRPipeline()
        result = ocr.recognize("receipt.jpg")
        print(result.text)
    """

    def __init__(
        self,
        det_model_path: Optional[Union[str, Path]] = None,
        rec_model_path: Optional[Union[str, Path]] = None,
        char_dict_path: Optional[Union[str, Path]] = None,
        params: ParamsLike = None,
        use_gpu: bool = False,
        use_tensorrt: bool = False,
        registry=None,
        session_factory: Callable[..., Any] = ONNXInferenceBase,
    ):
        """
        Initialize OCR pipeline (no models are loaded yet)

        Args:
            det_model_path: Path to detection model (default: from registry)
            rec_model_path: Path to recognition model (default: from registry)
            char_dict_path: Path to character dictionary (default: from registry)
            params: Default parameters for calls that do not pass their own
            use_gpu: Enable CUDA GPU acceleration
            use_tensorrt: Enable TensorRT acceleration
            registry: ModelRegistry used to resolve missing paths
            session_factory: Callable(model_path, use_gpu=..., use_tensorrt=...)
                returning an inference session
        """
        self.det_model_path = det_model_path
        self.rec_model_path = rec_model_path
        self.char_dict_path = char_dict_path
        self.det_config = DetectorConfig(use_gpu=use_gpu, use_tensorrt=use_tensorrt)
        self.rec_config = RecognizerConfig(use_gpu=use_gpu, use_tensorrt=use_tensorrt)
        self._registry = registry
        self._session_factory = session_factory

        self._params = OcrParams().merge(params)
        self._state = PipelineState.UNINITIALIZED
        self._lock = threading.Lock()

        self.text_detector: Optional[TextDetector] = None
        self.text_recognizer: Optional[TextRecognizer] = None

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is PipelineState.READY

    @property
    def params(self) -> OcrParams:
        return self._params

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self) -> None:
        """Load the vocabulary and both model sessions.

        Does nothing if already loaded.

        Raises:
            ModelLoadError: If anything fails to load, now or previously
        """
        with self._lock:
            if self._state is PipelineState.READY:
                return
            if self._state is PipelineState.FAILED:
                raise ModelLoadError(
                    "OCR models previously failed to load; create a new OCRPipeline"
                )

            self._state = PipelineState.LOADING
            start = time.perf_counter()
            try:
                det_path, rec_path, dict_path = self._resolve_paths()

                character = load_character_dict(
                    dict_path, use_space_char=self.rec_config.use_space_char
                )

                logger.info("Loading detection model %s", det_path)
                det_session = self._session_factory(
                    det_path,
                    use_gpu=self.det_config.use_gpu,
                    use_tensorrt=self.det_config.use_tensorrt,
                )

                logger.info("Loading recognition model %s", rec_path)
                rec_session = self._session_factory(
                    rec_path,
                    use_gpu=self.rec_config.use_gpu,
                    use_tensorrt=self.rec_config.use_tensorrt,
                )
            except Exception as e:
                self._state = PipelineState.FAILED
                logger.error("OCR initialization failed: %s", e)
                if isinstance(e, ModelLoadError):
                    raise
                raise ModelLoadError(f"Failed to load OCR models: {e}") from e

            self.text_detector = TextDetector(det_session, self.det_config)
            self.text_recognizer = TextRecognizer(rec_session, character, self.rec_config)
            self._state = PipelineState.READY
            logger.info(
                "OCR models initialized in %.2fs (%d characters)",
                time.perf_counter() - start, len(character),
            )

    def _resolve_paths(self):
        det_path = self.det_model_path
        rec_path = self.rec_model_path
        dict_path = self.char_dict_path

        if det_path is None or rec_path is None or dict_path is None:
            registry = self._registry
            if registry is None:
                from ...models import registry
            if det_path is None:
                det_path = registry.get("paddle_ocr", "detector")
            if rec_path is None:
                rec_path = registry.get("paddle_ocr", "recognizer")
            if dict_path is None:
                dict_path = registry.get("paddle_ocr", "dictionary")

        return det_path, rec_path, dict_path

    def _ensure_ready(self) -> None:
        if self._state is not PipelineState.READY:
            self.init()
        if self._state is not PipelineState.READY:
            raise ModelLoadError("OCR models are not available after initialization")

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    def set_params(self, params: ParamsLike) -> OcrParams:
        """Merge ``params`` into the defaults used by later calls."""
        self._params = self._params.merge(params)
        return self._params

    def resolve_params(self, params: ParamsLike = None) -> OcrParams:
        """Parameters for a single call: defaults with ``params`` merged on top."""
        return self._params.merge(params)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def preprocess_only(self, image_source: ImageSource, params: ParamsLike = None) -> ImageBuffer:
        """Run only the preprocessing stage (no models needed)."""
        params = self.resolve_params(params)
        image = load_image(image_source)
        try:
            return preprocess_image(image, params)
        finally:
            if image is not image_source:
                image.close()

    def detect(self, image_source: ImageSource, params: ParamsLike = None) -> List[QuadBox]:
        """Detect text boxes, in ``image_source`` pixel coordinates.

        Raises:
            ModelNotInitialized: If ``init`` has not completed
        """
        if self.text_detector is None:
            raise ModelNotInitialized("Call init() before detect()")
        params = self.resolve_params(params)
        image, src_w, src_h = self._load_and_preprocess(image_source, params)
        try:
            boxes = self.text_detector.detect(image, params)
            scale_x = src_w / float(image.width)
            scale_y = src_h / float(image.height)
        finally:
            image.close()
        return [box.scale(scale_x, scale_y) for box in boxes]

    def _load_and_preprocess(self, image_source: ImageSource, params: OcrParams):
        """Preprocess ``image_source``; also return its original width and height."""
        original = load_image(image_source)
        try:
            return preprocess_image(original, params), original.width, original.height
        finally:
            if original is not image_source:
                original.close()

    def recognize(self, image_source: ImageSource, params: ParamsLike = None) -> OcrResult:
        """
        Perform OCR on an image

        Args:
            image_source: Encoded bytes, path, PIL image, RGB array or ImageBuffer
            params: Overrides for this call only

        Returns:
            OcrResult with boxes in ``image_source`` pixel coordinates

        Raises:
            ModelLoadError: If the models cannot be loaded
            InferenceError: If a model run fails
        """
        self._ensure_ready()
        params = self.resolve_params(params)
        start = time.perf_counter()

        image, src_w, src_h = self._load_and_preprocess(image_source, params)
        try:
            scale_x = src_w / float(image.width)
            scale_y = src_h / float(image.height)

            boxes = self.text_detector.detect(image, params)
            logger.info("Detected %d text regions", len(boxes))

            regions = []
            for box in boxes:
                try:
                    text, score = self.text_recognizer.recognize(image, box, params)
                except InferenceError:
                    raise
                except Exception as e:
                    logger.warning("Skipping region %s: %s", box.to_list(), e)
                    continue

                if text and score > params.rec_score_thresh:
                    regions.append(TextRegion(box.scale(scale_x, scale_y), text, score))
        finally:
            image.close()

        result = build_result(regions)
        logger.info(
            "Recognized %d regions in %d lines (%.2fs)",
            len(result.regions), len(result.lines), time.perf_counter() - start,
        )
        return result

    def __call__(self, image_source: ImageSource, params: ParamsLike = None) -> OcrResult:
        return self.recognize(image_source, params)

    def __repr__(self):
        return (
            f"OCRPipeline(\n"
            f"  state={self._state.value},\n"
            f"  detector={self.text_detector},\n"
            f"  recognizer={self.text_recognizer}\n"
            f")"
        )
