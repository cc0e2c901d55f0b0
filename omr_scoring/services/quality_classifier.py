"""Record quality classification.

Assigns a confidence tier and review status from how many answers were
detected and which identity fields are present. Tiers are checked from
the strictest down:

1. HIGH / OK: enough answers, booklet, student id and name all present
2. MEDIUM / OK: fewer answers but a student id
3. LOW / NEEDS_REVIEW: enough answers to be worth a human look
4. CRITICAL / REJECTED: everything else
"""

import math
from typing import Optional, Tuple

from omr_scoring.models.record import QualityThresholds

DEFAULT_THRESHOLDS = QualityThresholds()


def minimum_answers(ratio: float, total_questions: int) -> int:
    """Smallest answer count meeting ``ratio`` of ``total_questions``."""
    # 80/90 * 90 lands a hair off 80 in binary floating point
    return max(0, math.ceil(ratio * total_questions - 1e-9))


def classify_quality(
    detected_answer_count: int,
    total_questions: int,
    student_id: str,
    student_name: str,
    booklet: Optional[str],
    thresholds: QualityThresholds = DEFAULT_THRESHOLDS,
) -> Tuple[str, str]:
    """Classify a record.

    Returns:
        (confidence tier, review status)
    """
    if detected_answer_count >= minimum_answers(thresholds.high, total_questions) \
            and booklet and student_id and student_name:
        return "HIGH", "OK"
    if detected_answer_count >= minimum_answers(thresholds.medium, total_questions) and student_id:
        return "MEDIUM", "OK"
    if detected_answer_count >= minimum_answers(thresholds.low, total_questions):
        return "LOW", "NEEDS_REVIEW"
    return "CRITICAL", "REJECTED"


def is_record_valid(review_status: str, student_id: str) -> bool:
    return review_status != "REJECTED" and bool(student_id)
