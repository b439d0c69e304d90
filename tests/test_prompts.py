"""
Tests for the coworker persona prompt and persona marker handling.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from talkitout.prompts.persona import (
    AGREEABLENESS_LEVELS,
    CHARACTER_TRAITS,
    CONFLICT_STYLES,
    create_persona_prompt,
    display_reply,
    parse_persona_marker,
)


class TestPersonaPrompt:

    def test_threshold_in_words(self):
        prompt = create_persona_prompt(3)
        assert "up to three times" in prompt
        assert "After my third message" in prompt

    def test_other_threshold(self):
        prompt = create_persona_prompt(5)
        assert "up to five times" in prompt
        assert "After my fifth message" in prompt

    @pytest.mark.parametrize("threshold,ordinal", [
        (11, "11th"), (12, "12th"), (13, "13th"), (21, "21st"),
        (22, "22nd"), (23, "23rd"), (24, "24th"), (111, "111th"), (101, "101st"),
    ])
    def test_numeric_ordinals(self, threshold, ordinal):
        prompt = create_persona_prompt(threshold)
        assert f"up to {threshold} times" in prompt
        assert f"After my {ordinal} message" in prompt

    def test_lists_every_choice(self):
        prompt = create_persona_prompt()
        for choice in CHARACTER_TRAITS + CONFLICT_STYLES + AGREEABLENESS_LEVELS:
            assert choice in prompt

    def test_standard_feedback_structure(self):
        prompt = create_persona_prompt(camera_enabled=False)
        assert "NVC ANALYSIS:" in prompt
        assert "THOMAS-KILMANN ANALYSIS:" in prompt
        assert "NON-VERBAL COMMUNICATION STRENGTHS:" not in prompt

    def test_camera_feedback_structure(self):
        prompt = create_persona_prompt(camera_enabled=True)
        assert "VERBAL COMMUNICATION STRENGTHS:" in prompt
        assert "NON-VERBAL COMMUNICATION WEAKNESSES:" in prompt
        assert "camera" in prompt


class TestPersonaMarker:

    def test_parse_marker(self):
        marker = parse_persona_marker(
            "[TRAIT: Defensive, STYLE: Avoiding, AGREEABLENESS: moderate] Look, I know."
        )
        assert marker.trait == "DEFENSIVE"
        assert marker.style == "AVOIDING"
        assert marker.agreeableness == "MODERATE"

    def test_hyphenated_trait(self):
        marker = parse_persona_marker("[TRAIT: PASSIVE-AGGRESSIVE, STYLE: COMPETING, AGREEABLENESS: LOW]")
        assert marker.trait == "PASSIVE-AGGRESSIVE"

    def test_no_marker(self):
        assert parse_persona_marker("Sorry about that.") is None
        assert parse_persona_marker(None) is None

    def test_display_reply_strips_marker(self):
        text = "[TRAIT: ANXIOUS, STYLE: ACCOMMODATING, AGREEABLENESS: HIGH] I'm so sorry."
        assert display_reply(text) == "I'm so sorry."

    def test_display_reply_strips_feedback(self):
        text = "Fine, I'll fix it.\n\nSTRENGTHS:\n- Direct\n\nSUMMARY:\nOk."
        assert display_reply(text) == "Fine, I'll fix it."
