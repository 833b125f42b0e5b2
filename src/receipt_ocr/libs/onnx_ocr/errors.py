"""Exceptions raised by the OCR pipeline."""


class OCRError(Exception):
    """Base class for all OCR pipeline errors."""
    pass


class ModelLoadError(OCRError):
    """A model or the character dictionary could not be loaded.

    Fatal for the pipeline instance that raised it; construct a new
    pipeline to try again.
    """
    pass


class ModelNotInitialized(OCRError):
    """Inference was requested before the model sessions were loaded."""
    pass


class InferenceError(OCRError):
    """Exception raised when ONNX Runtime fails or returns an unexpected shape."""
    pass
