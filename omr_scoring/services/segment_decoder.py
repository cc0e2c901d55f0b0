"""Answer segment decoding.

Reads the answer columns of a scanner line and classifies every character
as an answer letter, an explicit blank, or an unexpected character. The
decoder is a pure function of (line, segments, expected count, config).
"""

import logging
from typing import List, Optional, Sequence, Tuple

from omr_scoring.models.record import DecodedSegment, DecoderConfig, SegmentDecodeResult
from omr_scoring.models.template import FieldDef

logger = logging.getLogger(__name__)

DEFAULT_DECODER_CONFIG = DecoderConfig()


def classify_char(char: str, config: DecoderConfig) -> Tuple[Optional[str], bool]:
    """Classify one answer column.

    Returns:
        (letter or None, whether the character was unexpected)
    """
    upper = char.upper()
    if upper in config.valid_answer_chars:
        return upper, False
    if char == config.blank_char:
        return None, False
    return None, True


def decode_segment(
    line: str,
    segment: FieldDef,
    config: DecoderConfig = DEFAULT_DECODER_CONFIG,
) -> Tuple[DecodedSegment, int, bool]:
    """Decode a single answer segment.

    Columns past the end of the line are read as blanks.

    Returns:
        (decoded segment, unexpected character count, whether it ran out of bounds)
    """
    chunk = line[segment.start - 1:segment.end]
    answers: List[Optional[str]] = []
    unexpected = 0
    for char in chunk:
        letter, is_unexpected = classify_char(char, config)
        answers.append(letter)
        if is_unexpected:
            unexpected += 1

    out_of_bounds = len(chunk) < segment.width
    if out_of_bounds:
        answers.extend([None] * (segment.width - len(chunk)))

    decoded = DecodedSegment(
        label=segment.label, start=segment.start, end=segment.end, answers=answers
    )
    return decoded, unexpected, out_of_bounds


def normalize_length(answers: Sequence[Optional[str]], expected: int) -> List[Optional[str]]:
    """Pad with blanks or truncate to exactly ``expected`` slots."""
    if expected < 0:
        raise ValueError(f"expected question count must be non-negative (got {expected})")
    result = list(answers[:expected])
    result.extend([None] * (expected - len(result)))
    return result


def decode_answers(
    line: str,
    segments: Sequence[FieldDef],
    expected_total_questions: int,
    config: DecoderConfig = DEFAULT_DECODER_CONFIG,
) -> SegmentDecodeResult:
    """Decode every answer segment of a line.

    Args:
        line: Cleaned scanner line
        segments: Answer segments in template order
        expected_total_questions: Length the flat answer list is forced to
        config: Valid answer letters and blank marker

    Returns:
        SegmentDecodeResult with per-segment and flat answers

    Raises:
        ValueError: If expected_total_questions is negative
    """
    if expected_total_questions < 0:
        raise ValueError(
            f"expected_total_questions must be non-negative (got {expected_total_questions})"
        )

    decoded: List[DecodedSegment] = []
    warnings: List[str] = []
    unexpected_total = 0

    for segment in segments:
        result, unexpected, out_of_bounds = decode_segment(line, segment, config)
        decoded.append(result)
        unexpected_total += unexpected
        if out_of_bounds:
            warnings.append(f"segment out of bounds: {segment.label}")

    if unexpected_total:
        warnings.append(f"{unexpected_total} unexpected characters read as blank")

    concatenated = [a for seg in decoded for a in seg.answers]
    if len(concatenated) != expected_total_questions:
        logger.debug(
            "Answer slots %d normalised to %d questions",
            len(concatenated),
            expected_total_questions,
        )

    return SegmentDecodeResult(
        segments=decoded,
        flat_answers=normalize_length(concatenated, expected_total_questions),
        slot_count=len(concatenated),
        unexpected_char_count=unexpected_total,
        warnings=warnings,
    )
