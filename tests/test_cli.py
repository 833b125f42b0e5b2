import json

from PIL import Image

from receipt_ocr import cli


def test_missing_input_file(tmp_path, capsys):
    assert cli.main([str(tmp_path / "nope.jpg")]) == 1
    assert "not found" in capsys.readouterr().err


def test_preprocess_only(tmp_path, png_bytes):
    src = tmp_path / "receipt.png"
    src.write_bytes(png_bytes)
    out = tmp_path / "preview.png"

    assert cli.main([str(src), "--preprocess-only", str(out), "--limit-side-len", "200"]) == 0
    with Image.open(out) as img:
        assert img.size == (200, 50)


def test_recognize_json(tmp_path, png_bytes, make_pipeline, monkeypatch):
    monkeypatch.setattr(cli, "OCRPipeline", lambda **kwargs: make_pipeline(params=kwargs["params"]))
    src = tmp_path / "receipt.png"
    src.write_bytes(png_bytes)
    out = tmp_path / "result.json"
    vis = tmp_path / "boxes.png"

    code = cli.main([str(src), "--json", "-o", str(out), "--visualize", str(vis), "--rec-score-thresh", "0.5"])

    assert code == 0
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["text"] == "ABC"
    assert vis.is_file()


def test_recognize_text_to_stdout(tmp_path, png_bytes, make_pipeline, monkeypatch, capsys):
    monkeypatch.setattr(cli, "OCRPipeline", lambda **kwargs: make_pipeline(params=kwargs["params"]))
    src = tmp_path / "receipt.png"
    src.write_bytes(png_bytes)

    assert cli.main([str(src)]) == 0
    assert capsys.readouterr().out.strip() == "ABC"


def test_threshold_flag_reaches_pipeline(tmp_path, png_bytes, make_pipeline, monkeypatch, capsys):
    monkeypatch.setattr(cli, "OCRPipeline", lambda **kwargs: make_pipeline(params=kwargs["params"]))
    src = tmp_path / "receipt.png"
    src.write_bytes(png_bytes)

    assert cli.main([str(src), "--rec-score-thresh", "0.95"]) == 0
    assert capsys.readouterr().out.strip() == ""
