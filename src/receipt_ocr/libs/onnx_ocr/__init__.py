"""
Offline OCR library built on PP-OCR ONNX models

Stages:
- preprocess_image: Grayscale, contrast stretch and sharpening
- TextDetector: Finds rotated text regions in images
- TextRecognizer: Converts text regions to strings
- assemble_lines: Orders regions and merges them into lines

High-level interface:
- OCRPipeline: Complete OCR pipeline with lazy model loading
"""

from .config import DetectorConfig, OcrParams, RecognizerConfig
from .dictionary import load_character_dict
from .errors import InferenceError, ModelLoadError, ModelNotInitialized, OCRError
from .image import ImageBuffer, load_image
from .line_assembler import assemble_lines, build_result, sort_regions
from .pipeline import OCRPipeline, PipelineState
from .preprocess import preprocess_image
from .results import Line, OcrResult, QuadBox, TextRegion
from .text_detector import TextDetector
from .text_recognizer import TextRecognizer

__all__ = [
    "DetectorConfig",
    "OcrParams",
    "RecognizerConfig",
    "load_character_dict",
    "InferenceError",
    "ModelLoadError",
    "ModelNotInitialized",
    "OCRError",
    "ImageBuffer",
    "load_image",
    "assemble_lines",
    "build_result",
    "sort_regions",
    "OCRPipeline",
    "PipelineState",
    "preprocess_image",
    "Line",
    "OcrResult",
    "QuadBox",
    "TextRegion",
    "TextDetector",
    "TextRecognizer",
]
