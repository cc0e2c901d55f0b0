"""Pydantic models for decoded optical reader records.

These are the decode pipeline's outputs: per-segment decode results, the
assembled per-student record, batch statistics and the flat legacy row
shape kept for older consumers.
"""

from typing import Dict, FrozenSet, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Letter = Literal["A", "B", "C", "D", "E"]
Booklet = Literal["A", "B", "C", "D"]
Confidence = Literal["HIGH", "MEDIUM", "LOW", "CRITICAL"]
ReviewStatus = Literal["OK", "NEEDS_REVIEW", "REJECTED"]

CONFIDENCE_SCORES: Dict[str, float] = {
    "HIGH": 1.0,
    "MEDIUM": 0.75,
    "LOW": 0.5,
    "CRITICAL": 0.25,
}


# =============================================================================
# DECODER CONFIGURATION
# =============================================================================

class DecoderConfig(BaseModel):
    """Character classes the segment decoder recognises."""
    model_config = ConfigDict(frozen=True)

    valid_answer_chars: FrozenSet[str] = Field(
        default=frozenset("ABCDE"),
        description="Upper-case letters accepted as answers"
    )
    blank_char: str = Field(
        default="-",
        min_length=1,
        max_length=1,
        description="Character the scanner writes for an unmarked question"
    )

    @field_validator("valid_answer_chars")
    @classmethod
    def validate_answer_chars(cls, v: FrozenSet[str]) -> FrozenSet[str]:
        """Answer characters must be single letters A-E."""
        if not v:
            raise ValueError("valid_answer_chars must not be empty")
        letters = frozenset(c.upper() for c in v)
        invalid = sorted(c for c in letters if c not in "ABCDE" or len(c) != 1)
        if invalid:
            raise ValueError(f"unsupported answer characters: {invalid}")
        return letters


class QualityThresholds(BaseModel):
    """Detected-answer ratios separating the confidence tiers."""
    model_config = ConfigDict(frozen=True)

    high: float = Field(default=80 / 90, ge=0.0, le=1.0)
    medium: float = Field(default=60 / 90, ge=0.0, le=1.0)
    low: float = Field(default=40 / 90, ge=0.0, le=1.0)


# =============================================================================
# DECODE OUTPUTS
# =============================================================================

class DecodedSegment(BaseModel):
    """Answers read from one answer segment, in column order."""
    label: str
    start: int
    end: int
    answers: List[Optional[Letter]] = Field(default_factory=list)


class SegmentDecodeResult(BaseModel):
    """Output of decoding every answer segment of one line."""
    segments: List[DecodedSegment] = Field(default_factory=list)
    flat_answers: List[Optional[Letter]] = Field(
        default_factory=list,
        description="Concatenated answers forced to the expected question count"
    )
    slot_count: int = Field(ge=0, description="Slots read before length normalisation")
    unexpected_char_count: int = Field(default=0, ge=0)
    warnings: List[str] = Field(default_factory=list)

    @property
    def detected_answer_count(self) -> int:
        return sum(1 for a in self.flat_answers if a is not None)


class SubjectRemapResult(BaseModel):
    """Answers grouped by subject code."""
    subject_answers: Dict[str, List[Optional[Letter]]] = Field(default_factory=dict)
    flat_answers: List[Optional[Letter]] = Field(default_factory=list)
    unmapped_labels: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class ParsedStudentRecord(BaseModel):
    """One decoded scanner line."""
    model_config = ConfigDict(frozen=True)

    line_number: int = Field(ge=1, description="1-based physical line number in the input")
    student_id: str = ""
    student_name: str = ""
    national_id: Optional[str] = None
    class_code: Optional[str] = None
    booklet: Optional[Booklet] = None
    raw_line: str = ""
    cleaned_line: str = ""
    subject_answers: Dict[str, List[Optional[Letter]]] = Field(default_factory=dict)
    flat_answers: List[Optional[Letter]] = Field(default_factory=list)
    detected_answer_count: int = Field(default=0, ge=0)
    slot_count: int = Field(default=0, ge=0)
    unexpected_char_count: int = Field(default=0, ge=0)
    confidence: Confidence = "CRITICAL"
    review_status: ReviewStatus = "REJECTED"
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    is_valid: bool = False
    extra_fields: Dict[str, str] = Field(
        default_factory=dict,
        description="Identity fields without a known role, keyed by label"
    )


# -----------------------------------------------------------------------------
# Batch
# -----------------------------------------------------------------------------

class BatchSummary(BaseModel):
    """Aggregate statistics over a decoded batch."""
    total_lines: int = Field(default=0, ge=0)
    success_count: int = Field(default=0, ge=0)
    needs_review_count: int = Field(default=0, ge=0)
    rejected_count: int = Field(default=0, ge=0)
    average_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    warnings: List[str] = Field(default_factory=list)


class DecodeResult(BaseModel):
    """Records of a decoded file plus their summary, ordered by line number."""
    template_name: str
    records: List[ParsedStudentRecord] = Field(default_factory=list)
    summary: BatchSummary = Field(default_factory=BatchSummary)


class LegacyOpticalRow(BaseModel):
    """Flat per-student row used by consumers that predate subject grouping."""
    line_number: int
    raw_line: str
    class_code: str = ""
    student_id: str = ""
    student_name: str = ""
    national_id: str = ""
    booklet: Optional[Booklet] = None
    answers: List[Optional[Letter]] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    is_valid: bool = False
