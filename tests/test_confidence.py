"""
Tests for the templated body-language record.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from talkitout.confidence import EXTENDED_FRAME_COUNT, frame_count_from, generate_confidence_feedback


class TestGenerateConfidenceFeedback:

    def test_no_frames_no_record(self):
        assert generate_confidence_feedback(0) is None
        assert generate_confidence_feedback(-3) is None

    def test_brief_template(self):
        record = generate_confidence_feedback(5)
        assert len(record.recommendations) == 3
        assert record.eye_contact == "You maintained good eye contact with the camera."

    def test_threshold_is_exclusive(self):
        assert len(generate_confidence_feedback(EXTENDED_FRAME_COUNT).recommendations) == 3
        assert len(generate_confidence_feedback(EXTENDED_FRAME_COUNT + 1).recommendations) == 4

    def test_extended_template(self):
        record = generate_confidence_feedback(40)
        assert "open palm gestures" in record.gestures
        assert all([
            record.posture, record.eye_contact, record.gestures,
            record.facial_expressions, record.overall_confidence,
        ])

    def test_wire_keys(self):
        data = generate_confidence_feedback(12).to_dict()
        assert set(data) == {
            "posture", "eyeContact", "gestures", "facialExpressions",
            "overallConfidence", "recommendations",
        }


class TestFrameCountFrom:

    def test_reads_count(self):
        assert frame_count_from({"frameCount": 7}) == 7

    def test_numeric_string(self):
        assert frame_count_from({"frameCount": "12"}) == 12

    def test_missing_or_invalid(self):
        assert frame_count_from(None) == 0
        assert frame_count_from({}) == 0
        assert frame_count_from({"frameCount": "lots"}) == 0
        assert frame_count_from({"frameCount": -4}) == 0
        assert frame_count_from("frameCount=3") == 0
