from receipt_ocr.libs.onnx_ocr import QuadBox, TextRegion, assemble_lines, build_result, sort_regions


def _region(text, cx, cy, w=40.0, h=20.0, score=0.9):
    return TextRegion(QuadBox.from_rect(cx - w / 2, cy - h / 2, w, h), text, score)


def test_receipt_rows():
    regions = [
        _region("TOTAL", 10, 100),
        _region("9.99", 200, 104),
        _region("STORE", 50, 20),
    ]
    text, lines = assemble_lines(regions)
    assert text == "STORE\nTOTAL 9.99"
    assert [line.text for line in lines] == ["STORE", "TOTAL 9.99"]


def test_row_band_overrides_small_vertical_offset():
    # "right" sits slightly higher but shares the row
    regions = [_region("right", 300, 48), _region("left", 20, 55)]
    assert [r.text for r in sort_regions(regions)] == ["left", "right"]


def test_half_height_boundary_starts_new_line():
    # Centers exactly half the average height apart are different rows
    regions = [_region("a", 10, 0), _region("b", 100, 10)]
    text, lines = assemble_lines(regions)
    assert text == "a\nb"
    assert len(lines) == 2


def test_empty_input():
    assert assemble_lines([]) == ("", [])
    result = build_result([])
    assert result.text == ""
    assert result.lines == ()
    assert result.regions == ()


def test_result_regions_follow_reading_order():
    regions = [_region("c", 10, 80), _region("b", 90, 12), _region("a", 10, 10)]
    result = build_result(regions)
    assert [r.text for r in result.regions] == ["a", "b", "c"]
    assert str(result) == "a b\nc"
    payload = result.to_dict()
    assert payload["text"] == "a b\nc"
    assert payload["lines"][0]["regions"][1]["text"] == "b"
