"""
Model registry: resolve, download and cache model files.

Files are looked up in a local model directory first; anything missing is
fetched from the HuggingFace repository via huggingface_hub, which handles
caching, resumable downloads and integrity checks.

Usage:
    from receipt_ocr.models import registry

    paths = registry.get_group_paths("paddle_ocr")   # download + resolve
    print(registry.status())                         # show what's cached
"""

import logging
import os
from pathlib import Path
from typing import Dict, Optional, Union

from .config import ALL_GROUPS, HF_REPO, MODEL_DIR_ENV, ModelFile, ModelGroup

logger = logging.getLogger(__name__)


class ModelRegistry:
    """Central manager for model files."""

    def __init__(self, repo_id: str = HF_REPO, local_dir: Optional[Union[str, Path]] = None):
        self._repo_id = repo_id
        self._groups = ALL_GROUPS
        if local_dir is None:
            local_dir = os.getenv(MODEL_DIR_ENV) or None
        self._local_dir = Path(local_dir) if local_dir else None

    @property
    def repo_id(self) -> str:
        return self._repo_id

    @property
    def local_dir(self) -> Optional[Path]:
        return self._local_dir

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(self, group_name: str, file_key: str) -> Path:
        """Return the local path for a model file, downloading if needed.

        Args:
            group_name: e.g. "paddle_ocr"
            file_key:   e.g. "detector", "recognizer", "dictionary"

        Returns:
            Resolved Path to the model file on disk.
        """
        group = self._resolve_group(group_name)
        mf = self._resolve_file(group, file_key)
        return self._ensure_file(mf)

    def get_group_paths(self, group_name: str) -> Dict[str, Path]:
        """Return *all* resolved paths for a model group.

        Returns:
            Dict mapping file_key -> local Path.
        """
        group = self._resolve_group(group_name)
        return {key: self._ensure_file(mf) for key, mf in group.files.items()}

    def status(self) -> str:
        """Return a human-readable status report."""
        lines = [
            "Model Registry Status",
            f"Repository: {self._repo_id}",
            f"Local dir:  {self._local_dir or '-'}",
            "=" * 60,
        ]
        for group in self._groups.values():
            lines.append(f"\n{group.name}  ({group.description})")
            for key, mf in group.files.items():
                cached = self._find_local(mf) or self._find_cached(mf)
                if cached is not None:
                    mark = "OK"
                    loc = str(cached)
                else:
                    mark = "MISSING"
                    loc = f"hf://{self._repo_id}/{mf.filename}"
                lines.append(f"  [{mark:>7}]  {key:<12} {mf.filename:<30} {loc}")
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _resolve_group(self, name: str) -> ModelGroup:
        if name not in self._groups:
            available = ", ".join(self._groups)
            raise KeyError(f"Unknown model group '{name}'. Available: {available}")
        return self._groups[name]

    @staticmethod
    def _resolve_file(group: ModelGroup, key: str) -> ModelFile:
        if key not in group.files:
            available = ", ".join(group.files)
            raise KeyError(
                f"Unknown file '{key}' in group '{group.name}'. Available: {available}"
            )
        return group.files[key]

    def _ensure_file(self, mf: ModelFile) -> Path:
        """Return the local path, downloading via HF Hub if needed."""
        local = self._find_local(mf)
        if local is not None:
            return local

        from huggingface_hub import hf_hub_download

        logger.info("Fetching %s from %s", mf.filename, self._repo_id)
        return Path(hf_hub_download(self._repo_id, mf.filename))

    def _find_local(self, mf: ModelFile) -> Optional[Path]:
        if self._local_dir is None:
            return None
        candidate = self._local_dir / mf.filename
        return candidate if candidate.is_file() else None

    def _find_cached(self, mf: ModelFile) -> Optional[Path]:
        """Check if a file is already in the HuggingFace cache."""
        from huggingface_hub import try_to_load_from_cache

        result = try_to_load_from_cache(self._repo_id, mf.filename)
        if isinstance(result, str):
            return Path(result)
        return None


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------
registry = ModelRegistry()
