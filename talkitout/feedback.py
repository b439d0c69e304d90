"""
Feedback extraction from the persona's final reply.

The model is asked to append a feedback block made of uppercase section
headers ("STRENGTHS:", "SUMMARY:", ...) after its last in-character line.
This module turns that semi-structured text into a FeedbackRecord.

Parsing is a small tokenizer over fixed header literals rather than a chain
of regular expressions:
- Headers are tried longest first, so "NON-VERBAL COMMUNICATION STRENGTHS:"
  is never mistaken for "VERBAL COMMUNICATION STRENGTHS:" or "STRENGTHS:"
- A header only counts when it does not continue a word or hyphenated term
- A section runs until the next recognized header or the end of the text
- Missing sections fall back to fixed defaults field by field, so callers
  always get a renderable record
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .schemas.feedback import (
    FeedbackRecord,
    NON_VERBAL_PREFIX,
    default_feedback,
    default_camera_feedback,
)

STRENGTHS = "STRENGTHS"
WEAKNESSES = "WEAKNESSES"
NVC_ANALYSIS = "NVC ANALYSIS"
THOMAS_KILMANN_ANALYSIS = "THOMAS-KILMANN ANALYSIS"
IMPROVEMENTS = "IMPROVEMENTS"
SUMMARY = "SUMMARY"

VERBAL_STRENGTHS = "VERBAL COMMUNICATION STRENGTHS"
VERBAL_WEAKNESSES = "VERBAL COMMUNICATION WEAKNESSES"
NON_VERBAL_STRENGTHS = "NON-VERBAL COMMUNICATION STRENGTHS"
NON_VERBAL_WEAKNESSES = "NON-VERBAL COMMUNICATION WEAKNESSES"

STANDARD_HEADERS = (
    STRENGTHS,
    WEAKNESSES,
    NVC_ANALYSIS,
    THOMAS_KILMANN_ANALYSIS,
    IMPROVEMENTS,
    SUMMARY,
)

CAMERA_HEADERS = (
    VERBAL_STRENGTHS,
    VERBAL_WEAKNESSES,
    NON_VERBAL_STRENGTHS,
    NON_VERBAL_WEAKNESSES,
    IMPROVEMENTS,
    SUMMARY,
)

ALL_HEADERS = tuple(dict.fromkeys(CAMERA_HEADERS + STANDARD_HEADERS))

BULLET_MARKERS = ("-", "•")


@dataclass
class Section:
    """One labeled block found in a response."""
    header: str
    start: int       # index of the header literal
    body_start: int  # index just past the colon
    body: str = ""


def _continues_word(ch: str) -> bool:
    return ch.isalnum() or ch in "-_"


def _priority_order(headers: tuple[str, ...]) -> list[str]:
    # Longest literal first; ties keep the declared order
    return sorted(headers, key=len, reverse=True)


def tokenize_sections(text: str, headers: tuple[str, ...] = STANDARD_HEADERS) -> list[Section]:
    """
    Find every recognized header in ``text`` and slice out its body.

    Args:
        text: Raw model output
        headers: Header names (without the trailing colon) to recognize

    Returns:
        Sections in the order they appear
    """
    ordered = _priority_order(headers)
    sections: list[Section] = []
    i = 0
    length = len(text)

    while i < length:
        if i > 0 and _continues_word(text[i - 1]):
            i += 1
            continue

        matched = None
        for header in ordered:
            if text.startswith(header + ":", i):
                matched = header
                break

        if matched is None:
            i += 1
            continue

        body_start = i + len(matched) + 1
        sections.append(Section(header=matched, start=i, body_start=body_start))
        i = body_start

    for current, following in zip(sections, sections[1:] + [None]):
        end = following.start if following else length
        current.body = text[current.body_start:end]

    return sections


def split_items(body: str) -> list[str]:
    """
    Split a section body into list items.

    Lines starting with a bullet marker open a new item; other lines continue
    the current item (or open one when there is none yet). Lines made only of
    markdown emphasis or rule characters are ignored.
    """
    items: list[str] = []
    current: Optional[list[str]] = None

    for raw in body.splitlines():
        line = raw.strip()
        if not line or not line.strip("*#_-= "):
            continue

        if line.startswith(BULLET_MARKERS):
            current = [line[1:].strip()]
            items.append("")
        elif current is None:
            current = [line]
            items.append("")
        else:
            current.append(line)

        items[-1] = " ".join(part for part in current if part)

    return [item for item in items if item]


def extract_sections(text: Optional[str], headers: tuple[str, ...]) -> dict[str, str]:
    """Map header -> body for the first occurrence of each header."""
    found: dict[str, str] = {}
    for section in tokenize_sections(text or "", headers):
        found.setdefault(section.header, section.body)
    return found


def parse_feedback(text: Optional[str]) -> FeedbackRecord:
    """
    Parse feedback from an audio-only session reply.

    Never raises: absent sections take the default value for that field, and
    a reply with no recognized section at all yields the default record.
    """
    sections = extract_sections(text, STANDARD_HEADERS)

    parsed = FeedbackRecord(
        strengths=split_items(sections.get(STRENGTHS, "")),
        weaknesses=split_items(sections.get(WEAKNESSES, "")),
        improvements=split_items(sections.get(IMPROVEMENTS, "")),
        summary=sections.get(SUMMARY, "").strip(),
        nvc_analysis=split_items(sections.get(NVC_ANALYSIS, "")),
        thomas_kilmann_analysis=split_items(sections.get(THOMAS_KILMANN_ANALYSIS, "")),
    )

    defaults = default_feedback()
    if parsed.is_empty():
        return defaults

    return FeedbackRecord(
        strengths=parsed.strengths or defaults.strengths,
        weaknesses=parsed.weaknesses or defaults.weaknesses,
        improvements=parsed.improvements or defaults.improvements,
        summary=parsed.summary or defaults.summary,
        nvc_analysis=parsed.nvc_analysis or defaults.nvc_analysis,
        thomas_kilmann_analysis=parsed.thomas_kilmann_analysis or defaults.thomas_kilmann_analysis,
    )


def parse_camera_feedback(text: Optional[str]) -> FeedbackRecord:
    """
    Parse feedback from a camera-enabled session reply.

    Verbal and non-verbal items share the strengths/weaknesses lists; the
    non-verbal ones come last and carry the "[Non-verbal] " prefix.
    """
    sections = extract_sections(text, CAMERA_HEADERS)

    strengths = split_items(sections.get(VERBAL_STRENGTHS, "")) + [
        NON_VERBAL_PREFIX + item for item in split_items(sections.get(NON_VERBAL_STRENGTHS, ""))
    ]
    weaknesses = split_items(sections.get(VERBAL_WEAKNESSES, "")) + [
        NON_VERBAL_PREFIX + item for item in split_items(sections.get(NON_VERBAL_WEAKNESSES, ""))
    ]
    parsed = FeedbackRecord(
        strengths=strengths,
        weaknesses=weaknesses,
        improvements=split_items(sections.get(IMPROVEMENTS, "")),
        summary=sections.get(SUMMARY, "").strip(),
    )

    defaults = default_camera_feedback()
    if parsed.is_empty():
        return defaults

    return FeedbackRecord(
        strengths=parsed.strengths or defaults.strengths,
        weaknesses=parsed.weaknesses or defaults.weaknesses,
        improvements=parsed.improvements or defaults.improvements,
        summary=parsed.summary or defaults.summary,
    )


def extract_feedback(text: Optional[str], camera_enabled: bool = False) -> FeedbackRecord:
    """Parse a final reply with the header set matching the session type."""
    if camera_enabled:
        return parse_camera_feedback(text)
    return parse_feedback(text)


def split_reply(text: Optional[str]) -> str:
    """Return the in-character part of a reply, before any feedback header."""
    text = text or ""
    sections = tokenize_sections(text, ALL_HEADERS)
    if not sections:
        return text.strip()
    return text[:sections[0].start].strip()
