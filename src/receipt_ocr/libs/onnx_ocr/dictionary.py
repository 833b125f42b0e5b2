"""Recognition vocabulary loader."""

from pathlib import Path
from typing import List, Union

from .errors import ModelLoadError


def load_character_dict(path: Union[str, Path], use_space_char: bool = False) -> List[str]:
    """Load the recognizer's character list.

    Line ``i`` of the file is the character for output class ``i + 1``;
    class 0 is the CTC blank and has no entry.

    Args:
        path: Dictionary file, one character per line (UTF-8)
        use_space_char: Append a space as the last entry, as PP-OCR models expect

    Returns:
        List of characters

    Raises:
        ModelLoadError: If the file is missing, unreadable or empty
    """
    try:
        with open(path, "rb") as fin:
            raw = fin.read().decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ModelLoadError(f"Failed to load character dictionary {path}: {e}") from e

    keys = [line.rstrip("\r") for line in raw.split("\n")]
    # A trailing newline leaves an empty last entry
    if keys and keys[-1] == "":
        keys.pop()

    if not keys:
        raise ModelLoadError(f"Character dictionary is empty: {path}")

    if use_space_char:
        keys.append(" ")
    return keys
