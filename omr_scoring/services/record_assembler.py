"""Record assembly and batch aggregation.

Runs field extraction, segment decoding, subject remapping and quality
classification over each scanner line and summarises the batch. Nothing
here raises on bad data: structural template problems and damaged lines
come back as rejected records with their errors and warnings attached.
"""

import logging
from typing import Iterable, Iterator, List, Sequence, Tuple

from omr_scoring.models.record import (
    CONFIDENCE_SCORES,
    BatchSummary,
    DecodeResult,
    DecoderConfig,
    LegacyOpticalRow,
    ParsedStudentRecord,
    QualityThresholds,
)
from omr_scoring.models.template import Template
from omr_scoring.services.field_extractor import extract_identity
from omr_scoring.services.quality_classifier import (
    DEFAULT_THRESHOLDS,
    classify_quality,
    is_record_valid,
)
from omr_scoring.services.segment_decoder import (
    DEFAULT_DECODER_CONFIG,
    decode_answers,
    normalize_length,
)
from omr_scoring.services.subject_remapper import remap_subjects
from omr_scoring.utils.normalizers import clean_line

logger = logging.getLogger(__name__)

# Lines shorter than this share of the template width are flagged
SHORT_LINE_RATIO = 0.8


def decode_line(
    raw_line: str,
    template: Template,
    line_number: int = 1,
    config: DecoderConfig = DEFAULT_DECODER_CONFIG,
    thresholds: QualityThresholds = DEFAULT_THRESHOLDS,
) -> ParsedStudentRecord:
    """Decode one scanner line into a student record.

    Args:
        raw_line: Line as read from the file
        template: Column layout
        line_number: 1-based line number in the source file
        config: Decoder character configuration
        thresholds: Quality tier ratios

    Returns:
        ParsedStudentRecord (REJECTED with errors if the template is unusable)
    """
    cleaned = clean_line(raw_line)
    identity = extract_identity(cleaned, template.identity_fields)
    warnings: List[str] = []

    width = template.line_width
    if width and len(cleaned) < SHORT_LINE_RATIO * width:
        warnings.append(f"short line: {len(cleaned)} characters, template expects {width}")

    structural = template.structural_errors()
    if structural:
        flat = normalize_length([], template.total_questions)
        return ParsedStudentRecord(
            line_number=line_number,
            student_id=identity.student_id,
            student_name=identity.student_name,
            national_id=identity.national_id,
            class_code=identity.class_code,
            booklet=identity.booklet,
            raw_line=raw_line,
            cleaned_line=cleaned,
            flat_answers=flat,
            confidence="CRITICAL",
            review_status="REJECTED",
            warnings=identity.warnings + warnings,
            errors=structural,
            is_valid=False,
            extra_fields=identity.extra_fields,
        )

    decoded = decode_answers(cleaned, template.answer_segments, template.total_questions, config)
    remapped = remap_subjects(decoded.segments, template.total_questions)
    warnings = identity.warnings + warnings + decoded.warnings + remapped.warnings

    detected = decoded.detected_answer_count
    confidence, review_status = classify_quality(
        detected,
        template.total_questions,
        identity.student_id,
        identity.student_name,
        identity.booklet,
        thresholds,
    )

    errors: List[str] = []
    if review_status == "REJECTED":
        errors.append(
            f"too few answers detected: {detected} of {template.total_questions}"
        )

    return ParsedStudentRecord(
        line_number=line_number,
        student_id=identity.student_id,
        student_name=identity.student_name,
        national_id=identity.national_id,
        class_code=identity.class_code,
        booklet=identity.booklet,
        raw_line=raw_line,
        cleaned_line=cleaned,
        subject_answers=remapped.subject_answers,
        flat_answers=decoded.flat_answers,
        detected_answer_count=detected,
        slot_count=decoded.slot_count,
        unexpected_char_count=decoded.unexpected_char_count,
        confidence=confidence,
        review_status=review_status,
        warnings=warnings,
        errors=errors,
        is_valid=is_record_valid(review_status, identity.student_id),
        extra_fields=identity.extra_fields,
    )


def iter_data_lines(text: str, skip_header_lines: int = 0) -> Iterator[Tuple[int, str]]:
    """Yield (line number, line) for every non-blank line after the header.

    Records end at LF or CR LF only. Other control characters stay inside
    the line and are blanked later by ``clean_line``. Line numbers are
    physical, so skipped headers and blank lines still count.
    """
    if skip_header_lines < 0:
        raise ValueError(f"skip_header_lines must be non-negative (got {skip_header_lines})")
    for idx, line in enumerate(text.split("\n")):
        line = line.removesuffix("\r")
        if idx < skip_header_lines or not line.strip():
            continue
        yield idx + 1, line


def summarize_batch(records: Sequence[ParsedStudentRecord]) -> BatchSummary:
    """Aggregate review counts and average confidence of a batch."""
    total = len(records)
    ok = sum(1 for r in records if r.review_status == "OK")
    review = sum(1 for r in records if r.review_status == "NEEDS_REVIEW")
    rejected = sum(1 for r in records if r.review_status == "REJECTED")
    average = sum(CONFIDENCE_SCORES[r.confidence] for r in records) / total if total else 0.0

    warnings: List[str] = []
    if rejected:
        warnings.append(f"{rejected} students excluded from scoring")

    return BatchSummary(
        total_lines=total,
        success_count=ok,
        needs_review_count=review,
        rejected_count=rejected,
        average_confidence=round(average, 4),
        warnings=warnings,
    )


def build_decode_result(template: Template, records: Iterable[ParsedStudentRecord]) -> DecodeResult:
    """Sort records by line number and attach the batch summary."""
    ordered = sorted(records, key=lambda r: r.line_number)
    summary = summarize_batch(ordered)
    logger.info(
        "Decoded %d lines with template %s: %d ok, %d review, %d rejected (avg confidence %.2f)",
        summary.total_lines,
        template.name,
        summary.success_count,
        summary.needs_review_count,
        summary.rejected_count,
        summary.average_confidence,
    )
    return DecodeResult(template_name=template.name, records=ordered, summary=summary)


def decode_text(
    text: str,
    template: Template,
    config: DecoderConfig = DEFAULT_DECODER_CONFIG,
    thresholds: QualityThresholds = DEFAULT_THRESHOLDS,
    skip_header_lines: int = 0,
) -> DecodeResult:
    """Decode a whole scanner export.

    Args:
        text: File contents, one record per line
        template: Column layout
        config: Decoder character configuration
        thresholds: Quality tier ratios
        skip_header_lines: Leading lines to ignore

    Returns:
        DecodeResult with records in line order
    """
    records = [
        decode_line(line, template, line_number, config, thresholds)
        for line_number, line in iter_data_lines(text, skip_header_lines)
    ]
    return build_decode_result(template, records)


def to_legacy_row(record: ParsedStudentRecord) -> LegacyOpticalRow:
    """Flatten a record into the pre-subject-grouping row shape."""
    return LegacyOpticalRow(
        line_number=record.line_number,
        raw_line=record.raw_line,
        class_code=record.class_code or "",
        student_id=record.student_id,
        student_name=record.student_name,
        national_id=record.national_id or "",
        booklet=record.booklet,
        answers=list(record.flat_answers),
        errors=list(record.errors),
        is_valid=record.is_valid,
    )