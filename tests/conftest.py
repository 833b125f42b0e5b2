import io

import numpy as np
import pytest
from PIL import Image

from receipt_ocr.libs.onnx_ocr import OCRPipeline


class FakeSession:
    """Stands in for ONNXInferenceBase: one input, outputs from a function."""

    def __init__(self, fn, name="x"):
        self.fn = fn
        self.input_names = [name]
        self.calls = []

    def get_input_feed(self, image_array):
        return {self.input_names[0]: image_array}

    def run(self, input_data):
        tensor = input_data[self.input_names[0]]
        self.calls.append(tensor.shape)
        return [self.fn(tensor)]


def dark_pixel_map(tensor):
    """Probability 1 wherever the normalized red channel is below the mean."""
    return (tensor[:, :1] < 0).astype(np.float32)


def ctc_output(indices, prob=0.9, vocab_size=5):
    """Build a [1, T, V] score matrix whose arg-max follows ``indices``."""
    out = np.full((1, len(indices), vocab_size), (1.0 - prob) / (vocab_size - 1), dtype=np.float32)
    for t, idx in enumerate(indices):
        out[0, t, idx] = prob
    return out


@pytest.fixture
def char_dict(tmp_path):
    path = tmp_path / "dict.txt"
    path.write_text("A\nB\nC\n", encoding="utf-8")
    return path


@pytest.fixture
def receipt_image():
    """400x100 white image with one near-black bar at x=100..199, y=40..59."""
    img = np.full((100, 400, 3), 255, dtype=np.uint8)
    img[40:60, 100:200] = 10
    return img


@pytest.fixture
def png_bytes(receipt_image):
    buffer = io.BytesIO()
    Image.fromarray(receipt_image).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def make_pipeline(char_dict):
    """Factory for pipelines backed by fake detection/recognition sessions."""

    def factory(det_fn=dark_pixel_map, rec_output=None, rec_fn=None, **kwargs):
        if rec_fn is None:
            output = ctc_output([1, 1, 0, 2, 3]) if rec_output is None else rec_output
            rec_fn = lambda tensor: output  # noqa: E731

        sessions = {}

        def session_factory(path, use_gpu=False, use_tensorrt=False):
            fn = det_fn if str(path).endswith("det.onnx") else rec_fn
            session = FakeSession(fn)
            sessions[str(path)] = session
            return session

        pipeline = OCRPipeline(
            det_model_path="det.onnx",
            rec_model_path="rec.onnx",
            char_dict_path=char_dict,
            session_factory=session_factory,
            **kwargs,
        )
        pipeline.fake_sessions = sessions
        return pipeline

    return factory
