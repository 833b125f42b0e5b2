import numpy as np
import pytest

from receipt_ocr.libs.onnx_ocr.postprocess import CTCLabelDecode, ComponentBoxPostProcess

VOCAB = ["a", "b", "c", "d"]


def _scores(indices, probs, vocab_size=len(VOCAB) + 1):
    out = np.zeros((len(indices), vocab_size), dtype=np.float32)
    for t, (idx, p) in enumerate(zip(indices, probs)):
        out[t, :] = (1.0 - p) / vocab_size
        out[t, idx] = p
    return out


class TestCTCLabelDecode:

    def test_distinct_classes_map_to_vocabulary(self):
        probs = [0.9, 0.8, 0.7, 0.6]
        text, score = CTCLabelDecode(VOCAB)(_scores([1, 2, 3, 4], probs))[0]
        assert text == "abcd"
        assert score == pytest.approx(np.mean(probs), abs=1e-6)

    def test_blank_and_repeats_collapse(self):
        preds = _scores([1, 1, 0, 1, 2, 2, 0, 0, 3], [0.9] * 9)
        text, _ = CTCLabelDecode(VOCAB)(preds)[0]
        assert text == "aabc"

    @pytest.mark.parametrize("repeats", [
        [1, 1, 1, 1],
        [3, 1, 2, 1],
        [1, 4, 1, 2],
    ])
    def test_extra_duplicates_do_not_change_text(self, repeats):
        base = [2, 0, 2, 3, 1]
        stretched = [idx for idx, n in zip(base, repeats + [1]) for _ in range(n)]
        decoder = CTCLabelDecode(VOCAB)
        probs = np.linspace(0.5, 0.99, len(stretched))
        text_base, _ = decoder(_scores(base, [0.9] * len(base)))[0]
        text_stretched, _ = decoder(_scores(stretched, probs))[0]
        assert text_base == text_stretched == "bbca"

    def test_only_blanks_gives_empty_text_and_zero_score(self):
        text, score = CTCLabelDecode(VOCAB)(_scores([0, 0, 0], [0.99] * 3))[0]
        assert text == ""
        assert score == 0.0

    def test_retained_steps_only_count_towards_score(self):
        preds = _scores([1, 1, 0, 2], [0.5, 0.9, 0.99, 0.7])
        text, score = CTCLabelDecode(VOCAB)(preds)[0]
        assert text == "ab"
        assert score == pytest.approx((0.5 + 0.7) / 2, abs=1e-6)

    def test_class_outside_vocabulary_is_dropped(self):
        preds = _scores([1, 6, 2], [0.9, 0.9, 0.9], vocab_size=7)
        text, _ = CTCLabelDecode(VOCAB)(preds)[0]
        assert text == "ab"

    def test_batched_input(self):
        preds = np.stack([_scores([1, 2], [0.9, 0.9]), _scores([3, 0], [0.8, 0.8])])
        results = CTCLabelDecode(VOCAB)(preds)
        assert [text for text, _ in results] == ["ab", "c"]


class TestComponentBoxPostProcess:

    @staticmethod
    def _run(pred, ratio=1.0, **kwargs):
        h, w = pred.shape
        op = ComponentBoxPostProcess(**kwargs)
        return op(pred, [h, w, ratio, ratio])

    def test_single_rectangle(self):
        pred = np.zeros((64, 96), dtype=np.float32)
        pred[10:30, 20:80] = 0.9
        boxes, scores = self._run(pred)
        assert len(boxes) == 1
        assert scores[0] == pytest.approx(0.9, abs=1e-6)
        box = boxes[0].as_array()
        assert box[0] == pytest.approx([19.5, 9.5], abs=1e-3)
        assert box[2] == pytest.approx([79.5, 29.5], abs=1e-3)

    def test_small_components_are_noise(self):
        pred = np.zeros((32, 32), dtype=np.float32)
        pred[2:5, 2:5] = 1.0  # 9 pixels
        assert self._run(pred) == ([], [])

    def test_low_mean_probability_is_rejected(self):
        pred = np.zeros((32, 64), dtype=np.float32)
        pred[5:20, 5:50] = 0.5
        assert self._run(pred, thresh=0.4, box_thresh=0.6) == ([], [])

    def test_thin_boxes_are_dropped(self):
        pred = np.zeros((32, 64), dtype=np.float32)
        pred[10:13, 5:60] = 1.0
        boxes, _ = self._run(pred, min_side=5.0)
        assert boxes == []

    def test_diagonal_neighbours_join_one_component(self):
        pred = np.zeros((40, 40), dtype=np.float32)
        pred[5:15, 5:15] = 1.0
        pred[15:25, 15:25] = 1.0  # touches only at a corner
        boxes, _ = self._run(pred)
        assert len(boxes) == 1

    def test_separate_components_and_rescaling(self):
        pred = np.zeros((64, 128), dtype=np.float32)
        pred[8:24, 8:60] = 1.0
        pred[40:56, 70:120] = 1.0
        boxes, _ = self._run(pred, ratio=0.5)
        assert len(boxes) == 2
        centers = sorted(box.center for box in boxes)
        assert centers[0] == pytest.approx((2 * 33.5, 2 * 15.5), abs=0.5)
        assert centers[1] == pytest.approx((2 * 94.5, 2 * 47.5), abs=0.5)

    def test_max_candidates_limits_components(self):
        pred = np.zeros((20, 200), dtype=np.float32)
        for x in range(0, 200, 20):
            pred[2:18, x:x + 10] = 1.0
        boxes, _ = self._run(pred, max_candidates=3)
        assert len(boxes) == 3
