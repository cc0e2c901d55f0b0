"""Scoring configuration and score result models.

Includes the national exam presets: LGS (high-school entrance, three wrong
answers cancel one right answer) and TYT (university basic proficiency,
four wrong cancel one).
"""

from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from omr_scoring.models.record import Booklet


class ScoringConfig(BaseModel):
    """Net, weighting and scaling parameters of one exam type."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(default="custom", description="Exam type name")
    penalty_divisor: int = Field(
        ge=0,
        description="Wrong answers per cancelled right answer; 0 disables the penalty"
    )
    subject_weights: Dict[str, float] = Field(default_factory=dict)
    max_raw_score: float = Field(gt=0, description="Weighted raw score of a perfect sheet")
    score_range: Tuple[float, float] = Field(
        default=(100.0, 500.0),
        description="Scaled score of an empty and a perfect sheet"
    )

    @field_validator("score_range")
    @classmethod
    def validate_score_range(cls, v: Tuple[float, float]) -> Tuple[float, float]:
        """Range must be increasing."""
        if v[0] >= v[1]:
            raise ValueError(f"score_range minimum must be below maximum (got {v})")
        return v

    @field_validator("subject_weights")
    @classmethod
    def validate_weights(cls, v: Dict[str, float]) -> Dict[str, float]:
        """Weights must be non-negative."""
        negative = sorted(code for code, w in v.items() if w < 0)
        if negative:
            raise ValueError(f"subject weights must be non-negative: {negative}")
        return v


class SubjectScoreResult(BaseModel):
    """Counts and net of one subject."""
    subject_code: str
    total_questions: int = Field(ge=0)
    correct: int = Field(ge=0)
    incorrect: int = Field(ge=0)
    blank: int = Field(ge=0)
    net: float
    weight: float = Field(ge=0.0)
    weighted_net: float


class ExamScoreResult(BaseModel):
    """Score of one student sheet."""
    subjects: List[SubjectScoreResult] = Field(default_factory=list)
    total_correct: int = Field(default=0, ge=0)
    total_incorrect: int = Field(default=0, ge=0)
    total_blank: int = Field(default=0, ge=0)
    total_net: float = 0.0
    weighted_raw_score: float = Field(default=0.0, ge=0.0)
    scaled_score: float = 0.0
    warnings: List[str] = Field(default_factory=list)

    def subject(self, code: str) -> Optional[SubjectScoreResult]:
        return next((s for s in self.subjects if s.subject_code == code), None)


class StudentScore(BaseModel):
    """Score tied back to the decoded line it came from."""
    line_number: int
    student_id: str
    student_name: str
    booklet: Optional[Booklet] = None
    result: ExamScoreResult


# =============================================================================
# EXAM PRESETS
# =============================================================================

LGS = ScoringConfig(
    name="LGS",
    penalty_divisor=3,
    subject_weights={"TUR": 4.0, "MAT": 4.0, "FEN": 4.0, "INK": 1.0, "DIN": 1.0, "ING": 1.0},
    max_raw_score=270.0,
    score_range=(100.0, 500.0),
)

# 40 TUR, 20 SOS, 40 MAT, 20 FEN
TYT = ScoringConfig(
    name="TYT",
    penalty_divisor=4,
    subject_weights={"TUR": 2.9, "SOS": 2.93, "MAT": 2.92, "FEN": 3.14},
    max_raw_score=40 * 2.9 + 20 * 2.93 + 40 * 2.92 + 20 * 3.14,
    score_range=(100.0, 500.0),
)

EXAM_PRESETS: Dict[str, ScoringConfig] = {
    "LGS": LGS,
    "TYT": TYT,
}


def get_exam_preset(name: str) -> ScoringConfig:
    """Look up a preset by name (case-insensitive).

    Raises:
        ValueError: If no preset has that name
    """
    key = name.strip().upper()
    if key not in EXAM_PRESETS:
        raise ValueError(
            f"unknown exam type '{name}'; expected one of {sorted(EXAM_PRESETS)}"
        )
    return EXAM_PRESETS[key]
