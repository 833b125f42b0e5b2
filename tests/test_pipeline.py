import numpy as np
import pytest

from receipt_ocr.libs.onnx_ocr import (
    ImageBuffer,
    InferenceError,
    ModelLoadError,
    ModelNotInitialized,
    OCRPipeline,
    OcrParams,
    PipelineState,
)

from conftest import ctc_output


def test_end_to_end_single_region(make_pipeline, receipt_image):
    pipeline = make_pipeline()
    result = pipeline.recognize(receipt_image)

    assert pipeline.state is PipelineState.READY
    assert result.text == "ABC"
    assert len(result.lines) == 1
    (region,) = result.regions
    assert region.score == pytest.approx(0.9, abs=1e-6)

    box = region.box.as_array()
    assert box.min(axis=0) == pytest.approx([100, 40], abs=3)
    assert box.max(axis=0) == pytest.approx([200, 60], abs=3)


def test_boxes_are_reported_in_input_coordinates(make_pipeline, receipt_image):
    # Preprocessing halves the image; boxes must come back at full size
    pipeline = make_pipeline(params={"limitSideLen": 200})
    result = pipeline.recognize(receipt_image)
    box = result.regions[0].box.as_array()
    assert box.min(axis=0) == pytest.approx([100, 40], abs=5)
    assert box.max(axis=0) == pytest.approx([200, 60], abs=5)


def test_blank_page_gives_empty_result(make_pipeline):
    pipeline = make_pipeline()
    blank = np.full((64, 64, 3), 255, dtype=np.uint8)
    result = pipeline.recognize(blank, {"enableContrast": False})
    assert result.text == ""
    assert result.regions == ()


@pytest.mark.parametrize("thresh,accepted", [(0.75, False), (0.7499, True)])
def test_score_must_exceed_threshold(make_pipeline, receipt_image, thresh, accepted):
    pipeline = make_pipeline(rec_output=ctc_output([1, 2], prob=0.75))
    result = pipeline.recognize(receipt_image, {"recScoreThresh": thresh})
    assert (result.text == "AB") is accepted
    assert (len(result.regions) == 1) is accepted


def test_empty_text_is_rejected(make_pipeline, receipt_image):
    pipeline = make_pipeline(rec_output=ctc_output([0, 0, 0], prob=0.99))
    assert pipeline.recognize(receipt_image).regions == ()


def test_set_params_applies_to_later_calls(make_pipeline, receipt_image):
    pipeline = make_pipeline()
    before = pipeline.params

    updated = pipeline.set_params({"recScoreThresh": 0.95})

    assert updated.rec_score_thresh == 0.95
    assert updated.det_db_thresh == before.det_db_thresh
    assert updated.padding_ratio == before.padding_ratio
    assert pipeline.recognize(receipt_image).regions == ()
    # Per-call overrides do not stick
    assert pipeline.recognize(receipt_image, {"recScoreThresh": 0.5}).text == "ABC"
    assert pipeline.params.rec_score_thresh == 0.95


def test_recognize_initializes_lazily(make_pipeline, receipt_image):
    pipeline = make_pipeline()
    assert pipeline.state is PipelineState.UNINITIALIZED
    pipeline(receipt_image)
    assert pipeline.is_ready


def test_init_is_idempotent(char_dict):
    calls = []

    def factory(path, use_gpu=False, use_tensorrt=False):
        calls.append(str(path))
        return object()

    pipeline = OCRPipeline("det.onnx", "rec.onnx", char_dict, session_factory=factory)
    pipeline.init()
    pipeline.init()
    assert calls == ["det.onnx", "rec.onnx"]


def test_failed_load_is_terminal(char_dict):
    calls = []

    def factory(path, use_gpu=False, use_tensorrt=False):
        calls.append(path)
        raise RuntimeError("bad model")

    pipeline = OCRPipeline("det.onnx", "rec.onnx", char_dict, session_factory=factory)
    with pytest.raises(ModelLoadError, match="bad model"):
        pipeline.init()
    assert pipeline.state is PipelineState.FAILED

    with pytest.raises(ModelLoadError):
        pipeline.recognize(np.zeros((32, 32, 3), dtype=np.uint8))
    assert len(calls) == 1


def test_missing_dictionary_fails_load(tmp_path, make_pipeline):
    pipeline = make_pipeline()
    pipeline.char_dict_path = tmp_path / "missing.txt"
    with pytest.raises(ModelLoadError):
        pipeline.init()
    assert pipeline.state is PipelineState.FAILED


def test_detect_requires_init(make_pipeline, receipt_image):
    pipeline = make_pipeline()
    with pytest.raises(ModelNotInitialized):
        pipeline.detect(receipt_image)

    pipeline.init()
    boxes = pipeline.detect(receipt_image)
    assert len(boxes) == 1


def test_detect_reports_input_coordinates(make_pipeline, receipt_image):
    pipeline = make_pipeline(params={"limitSideLen": 200})
    pipeline.init()
    (box,) = pipeline.detect(receipt_image)
    corners = box.as_array()
    assert corners.min(axis=0) == pytest.approx([100, 40], abs=5)
    assert corners.max(axis=0) == pytest.approx([200, 60], abs=5)

    (region,) = pipeline.recognize(receipt_image).regions
    assert region.box.as_array() == pytest.approx(corners, abs=1e-3)


def test_preprocess_only_needs_no_models(make_pipeline, receipt_image):
    pipeline = make_pipeline()
    out = pipeline.preprocess_only(receipt_image, {"limitSideLen": 100})
    assert isinstance(out, ImageBuffer)
    assert (out.width, out.height) == (100, 25)
    assert pipeline.state is PipelineState.UNINITIALIZED
    assert pipeline.fake_sessions == {}


def test_detection_failure_aborts_call(make_pipeline, receipt_image):
    def broken(tensor):
        raise InferenceError("det exploded")

    pipeline = make_pipeline(det_fn=broken)
    with pytest.raises(InferenceError, match="det exploded"):
        pipeline.recognize(receipt_image)
    assert pipeline.state is PipelineState.READY


def test_detection_shape_mismatch(make_pipeline, receipt_image):
    pipeline = make_pipeline(det_fn=lambda tensor: np.zeros((1, 1, 8, 8), dtype=np.float32))
    with pytest.raises(InferenceError):
        pipeline.recognize(receipt_image)


def test_recognition_failure_aborts_call(make_pipeline, receipt_image):
    def broken(tensor):
        raise InferenceError("rec exploded")

    pipeline = make_pipeline(rec_fn=broken)
    with pytest.raises(InferenceError, match="rec exploded"):
        pipeline.recognize(receipt_image)


def test_region_failure_is_skipped(make_pipeline, receipt_image, monkeypatch):
    pipeline = make_pipeline()
    pipeline.init()

    def explode(preds):
        raise ValueError("decode failed")

    monkeypatch.setattr(pipeline.text_recognizer, "postprocess_op", explode)
    result = pipeline.recognize(receipt_image)
    assert result.text == ""
    assert result.regions == ()


def test_recognizer_sees_fixed_height_input(make_pipeline, receipt_image):
    pipeline = make_pipeline()
    pipeline.recognize(receipt_image)
    rec = pipeline.fake_sessions["rec.onnx"]
    (shape,) = rec.calls
    assert shape[:3] == (1, 3, 48)
    # Roughly a 108x28 crop (100x20 box plus 4 px padding) scaled to height 48
    assert 160 < shape[3] < 210


def test_params_constructor_accepts_dataclass(make_pipeline):
    params = OcrParams(limit_side_len=640)
    pipeline = make_pipeline(params=params)
    assert pipeline.params == params
