"""
Receipt OCR Library
Offline text extraction from receipt photos with PP-OCR ONNX models
"""

from .libs.onnx_ocr import (
    ImageBuffer,
    InferenceError,
    Line,
    ModelLoadError,
    ModelNotInitialized,
    OCRError,
    OCRPipeline,
    OcrParams,
    OcrResult,
    QuadBox,
    TextRegion,
    load_image,
)
from .worker import OCRWorker, handle_message

__version__ = "0.1.0"
__all__ = [
    'OCRPipeline',
    'OCRWorker',
    'handle_message',
    'OcrParams',
    'OcrResult',
    'Line',
    'TextRegion',
    'QuadBox',
    'ImageBuffer',
    'load_image',
    'OCRError',
    'ModelLoadError',
    'ModelNotInitialized',
    'InferenceError',
]
