"""
Model definitions: sources and filenames.

Single source of truth for every model file the OCR pipeline loads.
All models are hosted on a single HuggingFace repository.
"""

from dataclasses import dataclass
from typing import Dict, List


# ---------------------------------------------------------------------------
# The one repo that holds everything
# ---------------------------------------------------------------------------
HF_REPO = "hpllduck/PaperStructure"

# Environment variable pointing at a local copy laid out like the repo
MODEL_DIR_ENV = "RECEIPT_OCR_MODEL_DIR"


@dataclass(frozen=True)
class ModelFile:
    """A single model file inside the HuggingFace repo."""
    filename: str          # path inside the repo, e.g. "paddle_ocr/det.onnx"
    description: str = ""


@dataclass(frozen=True)
class ModelGroup:
    """A logical group of model files that belong together."""
    name: str
    description: str
    files: Dict[str, ModelFile]  # key -> ModelFile

    @property
    def filenames(self) -> List[str]:
        return [f.filename for f in self.files.values()]


# ---------------------------------------------------------------------------
# PaddleOCR: text detection / recognition
# ---------------------------------------------------------------------------
PADDLE_OCR = ModelGroup(
    name="paddle_ocr",
    description="PP-OCRv5 text detection / recognition",
    files={
        "detector": ModelFile(
            filename="paddle_ocr/det.onnx",
            description="DB text detector",
        ),
        "recognizer": ModelFile(
            filename="paddle_ocr/rec.onnx",
            description="SVTR text recognizer",
        ),
        "dictionary": ModelFile(
            filename="paddle_ocr/ppocrv5_dict.txt",
            description="Character dictionary (18k+ chars)",
        ),
    },
)

# ---------------------------------------------------------------------------
# Master registry
# ---------------------------------------------------------------------------
ALL_GROUPS: Dict[str, ModelGroup] = {
    "paddle_ocr": PADDLE_OCR,
}
