"""
Model management for receipt-ocr.

Models are hosted on HuggingFace: https://huggingface.co/hpllduck/PaperStructure
A local copy can be used instead by setting RECEIPT_OCR_MODEL_DIR.

Usage:
    from receipt_ocr.models import registry

    path = registry.get("paddle_ocr", "detector")   # download + resolve
    print(registry.status())                        # show what's cached
"""

from .registry import ModelRegistry, registry
from .config import ALL_GROUPS, HF_REPO, MODEL_DIR_ENV, PADDLE_OCR

__all__ = [
    "ModelRegistry",
    "registry",
    "ALL_GROUPS",
    "HF_REPO",
    "MODEL_DIR_ENV",
    "PADDLE_OCR",
]
