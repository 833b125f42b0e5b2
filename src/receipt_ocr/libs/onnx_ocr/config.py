"""Configuration classes for OCR modules."""

import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional, Union

logger = logging.getLogger(__name__)


# camelCase names used by the message protocol -> field names
PARAM_ALIASES = {
    "limitSideLen": "limit_side_len",
    "detThreshold": "det_db_thresh",
    "detDbThresh": "det_db_thresh",
    "detBoxThreshold": "det_db_box_thresh",
    "detDbBoxThresh": "det_db_box_thresh",
    "recScoreThreshold": "rec_score_thresh",
    "recScoreThresh": "rec_score_thresh",
    "paddingRatio": "padding_ratio",
    "preprocessContrast": "preprocess_contrast",
    "enableContrast": "enable_contrast",
    "enableSharpen": "enable_sharpening",
    "enableSharpening": "enable_sharpening",
}

_TRUTHY = {"1", "true", "yes", "y", "on"}
_FALSY = {"0", "false", "no", "n", "off"}


@dataclass(frozen=True)
class OcrParams:
    """Per-call tunables for preprocessing, detection and recognition.

    Instances are immutable; ``merge`` returns a new instance so a pipeline
    can swap its defaults without affecting a call already in flight.
    """
    limit_side_len: int = 2000  # Maximum side length before detection
    det_db_thresh: float = 0.4  # Per-pixel probability cutoff
    det_db_box_thresh: float = 0.6  # Minimum mean probability of a component
    rec_score_thresh: float = 0.6  # Minimum mean character confidence (strict)
    padding_ratio: float = 0.15  # Crop padding relative to the box's short side
    preprocess_contrast: float = 1.3  # Contrast gain after histogram stretch
    enable_contrast: bool = True
    enable_sharpening: bool = True

    def merge(self, params: Union["OcrParams", Mapping[str, Any], None]) -> "OcrParams":
        """Return a copy with the given keys replaced.

        Accepts another ``OcrParams`` or a mapping with snake_case or
        camelCase keys. Unknown keys and values of the wrong type are
        ignored.
        """
        if params is None:
            return self
        if isinstance(params, OcrParams):
            return params

        updates = {}
        types = {f.name: f.type for f in fields(self)}
        for key, value in params.items():
            name = PARAM_ALIASES.get(key, key)
            if name not in types:
                logger.warning("Ignoring unknown OCR parameter %r", key)
                continue
            coerced = _coerce(value, types[name])
            if coerced is None:
                logger.warning(
                    "Ignoring OCR parameter %r: expected %s, got %r",
                    key, types[name], value,
                )
                continue
            updates[name] = coerced
        return replace(self, **updates) if updates else self

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_env(cls, prefix: str = "RECEIPT_OCR_") -> "OcrParams":
        """Build parameters from ``<prefix><FIELD_NAME>`` environment variables."""
        values = {}
        defaults = cls()
        for f in fields(cls):
            raw = os.getenv(prefix + f.name.upper())
            if raw is None:
                continue
            default = getattr(defaults, f.name)
            if isinstance(default, bool):
                flag = raw.strip().lower()
                if flag in _TRUTHY:
                    values[f.name] = True
                elif flag in _FALSY:
                    values[f.name] = False
            elif isinstance(default, int):
                try:
                    values[f.name] = int(raw)
                except ValueError:
                    pass
            else:
                try:
                    values[f.name] = float(raw)
                except ValueError:
                    pass
        return cls(**values)


def _coerce(value: Any, type_name: Any) -> Optional[Any]:
    """Convert ``value`` to the field type, or None when it is the wrong kind."""
    type_name = getattr(type_name, "__name__", type_name)
    if type_name == "bool":
        return value if isinstance(value, bool) else None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if type_name == "int":
        return int(round(value))
    return float(value)


@dataclass
class DetectorConfig:
    """Configuration for text detection stage."""
    min_component_area: int = 10  # Components with fewer pixels are noise
    min_box_side: float = 5.0  # Boxes with a shorter side (source px) are dropped
    max_candidates: int = 1000  # Maximum number of components examined
    use_gpu: bool = False  # Enable CUDA GPU acceleration
    use_tensorrt: bool = False  # Enable TensorRT acceleration


@dataclass
class RecognizerConfig:
    """Configuration for text recognition stage."""
    rec_image_height: int = 48  # Recognizer input height; width is variable
    use_space_char: bool = True  # Append space to the vocabulary
    use_gpu: bool = False  # Enable CUDA GPU acceleration
    use_tensorrt: bool = False  # Enable TensorRT acceleration
