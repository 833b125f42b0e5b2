"""Reading-order sorting and line merging for recognized regions."""

from functools import cmp_to_key
from typing import List, Sequence, Tuple

from .results import Line, OcrResult, TextRegion


def _same_row(a: TextRegion, b: TextRegion) -> bool:
    avg_height = (a.height + b.height) / 2
    return abs(a.center_y - b.center_y) < avg_height * 0.5


def _compare(a: TextRegion, b: TextRegion) -> float:
    if _same_row(a, b):
        return a.center_x - b.center_x
    return a.center_y - b.center_y


def sort_regions(regions: Sequence[TextRegion]) -> List[TextRegion]:
    """Sort regions top to bottom, left to right within a row.

    Two regions whose vertical centers differ by less than half their
    average height are in the same row and ordered by horizontal center.
    """
    return sorted(regions, key=cmp_to_key(_compare))


def assemble_lines(regions: Sequence[TextRegion]) -> Tuple[str, List[Line]]:
    """Group regions into lines in reading order.

    Returns:
        Tuple of (transcript, lines); the transcript joins line texts
        with newlines
    """
    ordered = sort_regions(regions)
    if not ordered:
        return "", []

    lines = []
    current = [ordered[0]]
    for region in ordered[1:]:
        if _same_row(current[-1], region):
            current.append(region)
        else:
            lines.append(Line(tuple(current)))
            current = [region]
    lines.append(Line(tuple(current)))

    return "\n".join(line.text for line in lines), lines


def build_result(regions: Sequence[TextRegion]) -> OcrResult:
    """Assemble an ``OcrResult`` from accepted regions."""
    text, lines = assemble_lines(regions)
    ordered = tuple(region for line in lines for region in line.regions)
    return OcrResult(text=text, lines=tuple(lines), regions=ordered)
