import unittest

import numpy as np

from yolo_track.config import DecoderConfig
from yolo_track.decode import YoloDecoder
from yolo_track.thresholds import ClassRule, ClassRuleTable


def _make_output(preds, num_classes=80):
    """
    Build a (1, 4 + C, N) tensor from (cx, cy, w, h, class_id, score) tuples.
    """

    out = np.zeros((1, 4 + num_classes, len(preds)), dtype=np.float32)
    for i, (cx, cy, w, h, class_id, score) in enumerate(preds):
        out[0, 0:4, i] = [cx, cy, w, h]
        out[0, 4 + class_id, i] = score
    return out


class TestYoloDecoder(unittest.TestCase):
    def setUp(self) -> None:
        self.decoder = YoloDecoder(DecoderConfig(), num_labels=80)

    def test_decode_person_same_resolution(self) -> None:
        p = _make_output([(320, 320, 200, 300, 0, 0.9)])
        result = self.decoder.decode(p, (640, 640))
        self.assertTrue(result.ok)
        self.assertEqual(len(result.candidates), 1)
        cand = result.candidates[0]
        self.assertEqual(cand.class_id, 0)
        self.assertAlmostEqual(cand.score, 0.9, places=5)
        self.assertAlmostEqual(cand.box.x, 220.0)
        self.assertAlmostEqual(cand.box.y, 170.0)
        self.assertAlmostEqual(cand.box.width, 200.0)
        self.assertAlmostEqual(cand.box.height, 300.0)

    def test_scales_each_axis_to_frame(self) -> None:
        p = _make_output([(320, 320, 100, 100, 2, 0.9)])
        result = self.decoder.decode(p, (1280, 720))
        self.assertEqual(len(result.candidates), 1)
        box = result.candidates[0].box
        self.assertAlmostEqual(box.x, 540.0)
        self.assertAlmostEqual(box.width, 200.0)
        self.assertAlmostEqual(box.y, 303.75)
        self.assertAlmostEqual(box.height, 112.5)

    def test_per_class_confidence(self) -> None:
        p = _make_output(
            [
                (320, 320, 200, 300, 0, 0.45),  # person below 0.5
                (100, 100, 100, 100, 56, 0.22),  # chair above 0.2
                (400, 400, 100, 100, 2, 0.28),  # car below 0.3
                (500, 500, 100, 100, 41, 0.26),  # cup above default 0.25
            ]
        )
        result = self.decoder.decode(p, (640, 640))
        self.assertTrue(result.ok)
        self.assertEqual(sorted(c.class_id for c in result.candidates), [41, 56])

    def test_area_window_is_per_class(self) -> None:
        # 40x40 on 640x640 is ~0.0039 of the frame: too small for a person, fine for a cup.
        p = _make_output(
            [
                (100, 100, 40, 40, 0, 0.9),
                (300, 300, 40, 40, 41, 0.9),
            ]
        )
        result = self.decoder.decode(p, (640, 640))
        self.assertEqual([c.class_id for c in result.candidates], [41])

    def test_small_person_rejected_for_all_frame_sizes(self) -> None:
        p = _make_output([(320, 320, 50, 50, 0, 0.95)])
        for frame_size in [(320, 240), (640, 480), (640, 640), (1280, 720), (1920, 1080), (3840, 2160)]:
            with self.subTest(frame_size=frame_size):
                result = self.decoder.decode(p, frame_size)
                self.assertTrue(result.ok)
                self.assertEqual(result.candidates, [])

    def test_oversized_box_rejected(self) -> None:
        # Covers the whole frame: above the person max ratio of 0.8.
        p = _make_output([(320, 320, 640, 640, 0, 0.9)])
        result = self.decoder.decode(p, (640, 640))
        self.assertEqual(result.candidates, [])

    def test_clamps_to_frame_bounds(self) -> None:
        p = _make_output([(10, 630, 100, 100, 41, 0.9)])
        result = self.decoder.decode(p, (640, 640))
        self.assertEqual(len(result.candidates), 1)
        box = result.candidates[0].box
        self.assertAlmostEqual(box.x, 0.0)
        self.assertAlmostEqual(box.x2, 60.0)
        self.assertAlmostEqual(box.y, 580.0)
        self.assertAlmostEqual(box.y2, 640.0)
        self.assertGreaterEqual(box.width, 0.0)
        self.assertGreaterEqual(box.height, 0.0)

    def test_area_ratio_bounds_are_exclusive(self) -> None:
        rules = ClassRuleTable(default=ClassRule(min_area_ratio=0.01))
        decoder = YoloDecoder(DecoderConfig(model_input_size=(100, 100), rules=rules), num_labels=80)
        # 10x10 on 100x100 is exactly the minimum ratio; 11x11 is just above it.
        at_min = decoder.decode(_make_output([(50, 50, 10, 10, 41, 0.9)]), (100, 100))
        self.assertTrue(at_min.ok)
        self.assertEqual(at_min.candidates, [])
        above_min = decoder.decode(_make_output([(50, 50, 11, 11, 41, 0.9)]), (100, 100))
        self.assertEqual(len(above_min.candidates), 1)

    def test_out_of_range_scores_dropped(self) -> None:
        p = _make_output(
            [
                (320, 320, 100, 100, 41, 3.5),
                (100, 100, 100, 100, 41, float("nan")),
                (500, 500, 100, 100, 41, 0.8),
            ]
        )
        result = self.decoder.decode(p, (640, 640))
        self.assertTrue(result.ok)
        self.assertEqual(len(result.candidates), 1)
        self.assertAlmostEqual(result.candidates[0].score, 0.8, places=5)
        self.assertAlmostEqual(result.candidates[0].box.x, 450.0)

        # Non-finite box coordinates are dropped too.
        p = _make_output([(float("inf"), 320, 100, 100, 41, 0.9)])
        self.assertEqual(self.decoder.decode(p, (640, 640)).candidates, [])

    def test_tiny_and_degenerate_boxes_dropped(self) -> None:
        p = _make_output(
            [
                (100, 100, 4, 80, 41, 0.9),  # thinner than min_box_side
                (700, 300, 50, 50, 41, 0.9),  # entirely outside: zero width after clamping
            ]
        )
        self.assertEqual(self.decoder.decode(p, (640, 640)).candidates, [])

        # Without a minimum side the thin box survives; the zero-width one never does.
        no_min_side = YoloDecoder(DecoderConfig(min_box_side=0.0), num_labels=80)
        kept = no_min_side.decode(p, (640, 640)).candidates
        self.assertEqual(len(kept), 1)
        self.assertAlmostEqual(kept[0].box.width, 4.0)

    def test_out_of_range_class_discarded(self) -> None:
        p = _make_output([(320, 320, 100, 100, 4, 0.9)], num_classes=5)
        small_table = YoloDecoder(DecoderConfig(), num_labels=3)
        result = small_table.decode(p, (640, 640))
        self.assertTrue(result.ok)
        self.assertEqual(result.candidates, [])

        unbounded = YoloDecoder(DecoderConfig())
        self.assertEqual([c.class_id for c in unbounded.decode(p, (640, 640)).candidates], [4])

    def test_custom_rule_table(self) -> None:
        rules = ClassRuleTable(default=ClassRule(conf_threshold=0.6))
        decoder = YoloDecoder(DecoderConfig(rules=rules), num_labels=80)
        p = _make_output([(320, 320, 100, 100, 0, 0.55), (100, 100, 100, 100, 41, 0.65)])
        result = decoder.decode(p, (640, 640))
        self.assertEqual([c.class_id for c in result.candidates], [41])

    def test_no_objects_is_not_a_failure(self) -> None:
        p = np.zeros((1, 84, 100), dtype=np.float32)
        result = self.decoder.decode(p, (640, 480))
        self.assertTrue(result.ok)
        self.assertEqual(result.candidates, [])
        self.assertIsNone(result.error)

    def test_malformed_inputs_fail_without_raising(self) -> None:
        cases = {
            "none": None,
            "rank2": np.zeros((84, 100), dtype=np.float32),
            "batch2": np.zeros((2, 84, 100), dtype=np.float32),
            "no_class_rows": np.zeros((1, 4, 100), dtype=np.float32),
            "zero_preds": np.zeros((1, 84, 0), dtype=np.float32),
            "bad_shape_entry": (np.zeros(84 * 10, dtype=np.float32), ("1", "x", 1)),
            "negative_shape": (np.zeros(84 * 10, dtype=np.float32), (-1, -84, 10)),
        }
        for name, case in cases.items():
            p, shape = case if isinstance(case, tuple) else (case, None)
            with self.subTest(case=name):
                result = self.decoder.decode(p, (640, 480), shape=shape)
                self.assertFalse(result.ok)
                self.assertEqual(result.candidates, [])
                self.assertIsInstance(result.error, str)

    def test_invalid_frame_size_fails(self) -> None:
        p = _make_output([(320, 320, 100, 100, 41, 0.9)])
        self.assertFalse(self.decoder.decode(p, (0, 480)).ok)
        self.assertFalse(self.decoder.decode(p, None).ok)
        self.assertFalse(self.decoder.decode(p, ("640", "480")).ok)
        self.assertFalse(self.decoder.decode(p, (float("nan"), 480)).ok)
        self.assertFalse(self.decoder.decode(p, (True, 480)).ok)

    def test_flat_buffer_with_shape(self) -> None:
        p = _make_output([(320, 320, 200, 300, 0, 0.9), (100, 100, 100, 100, 41, 0.7)])
        from_tensor = self.decoder.decode(p, (640, 640))
        from_flat = self.decoder.decode(p.ravel(), (640, 640), shape=p.shape)
        self.assertTrue(from_flat.ok)
        self.assertEqual(from_flat.candidates, from_tensor.candidates)

        mismatched = self.decoder.decode(p.ravel()[:-1], (640, 640), shape=p.shape)
        self.assertFalse(mismatched.ok)


if __name__ == "__main__":
    unittest.main()
