"""Scoring of decoded answers against a booklet-aware answer key.

Answers are matched to questions per subject: the i-th answer of subject S
is scored against the i-th question number of S in the key, so the order of
segments on the sheet never matters. Nets, subject weights and scaling
follow the national exam formulas:

    net      = correct - incorrect / penalty_divisor
    raw      = clamp(sum(net * weight), 0, max_raw_score)
    scaled   = min + raw * (max - min) / max_raw_score
"""

import logging
from typing import Dict, List, Optional, Sequence

from omr_scoring.models.answer_key import AnswerKey
from omr_scoring.models.record import DecodeResult, ParsedStudentRecord
from omr_scoring.models.scoring import (
    ExamScoreResult,
    ScoringConfig,
    StudentScore,
    SubjectScoreResult,
)

logger = logging.getLogger(__name__)

DEFAULT_BOOKLET = "A"


def calculate_net(correct: int, incorrect: int, penalty_divisor: int) -> float:
    """Net correct answers; a divisor of 0 means wrong answers cost nothing."""
    if penalty_divisor <= 0:
        return float(correct)
    return correct - incorrect / penalty_divisor


def scale_score(raw_score: float, config: ScoringConfig) -> float:
    """Map a weighted raw score onto the configured score range, clamped."""
    low, high = config.score_range
    scaled = low + raw_score * (high - low) / config.max_raw_score
    return min(max(scaled, low), high)


def _score_subject(
    subject_code: str,
    answers: Sequence[Optional[str]],
    question_numbers: Sequence[int],
    resolved_key: Dict[int, str],
    config: ScoringConfig,
    warnings: List[str],
) -> SubjectScoreResult:
    correct = incorrect = blank = 0

    for idx, answer in enumerate(answers):
        if idx >= len(question_numbers):
            warnings.append(
                f"{subject_code}: no answer key entry for answer {idx + 1}, left unscored"
            )
            logger.warning("%s answer %d has no answer key entry", subject_code, idx + 1)
            continue
        expected = resolved_key.get(question_numbers[idx])
        if expected is None:
            # cancelled question
            continue
        if answer is None:
            blank += 1
        elif answer == expected:
            correct += 1
        else:
            incorrect += 1

    # questions the sheet has no column for count as unanswered
    for question_no in question_numbers[len(answers):]:
        if question_no in resolved_key:
            blank += 1

    weight = config.subject_weights.get(subject_code)
    if weight is None:
        warnings.append(f"no weight configured for subject {subject_code}, using 0")
        logger.warning("Subject %s has no weight in %s", subject_code, config.name)
        weight = 0.0

    net = calculate_net(correct, incorrect, config.penalty_divisor)
    return SubjectScoreResult(
        subject_code=subject_code,
        total_questions=correct + incorrect + blank,
        correct=correct,
        incorrect=incorrect,
        blank=blank,
        net=net,
        weight=weight,
        weighted_net=net * weight,
    )


def score_answers(
    subject_answers: Dict[str, Sequence[Optional[str]]],
    answer_key: AnswerKey,
    booklet: Optional[str],
    config: ScoringConfig,
) -> ExamScoreResult:
    """Score subject-grouped answers.

    Args:
        subject_answers: Subject code -> answers in sheet order
        answer_key: Key covering every booklet
        booklet: Booklet the student took; booklet A is assumed when missing
        config: Net, weighting and scaling parameters

    Returns:
        ExamScoreResult with per-subject results and any scoring warnings
    """
    warnings: List[str] = []
    if not booklet:
        warnings.append(f"booklet missing, scored with booklet {DEFAULT_BOOKLET}")
        booklet = DEFAULT_BOOKLET

    resolved = answer_key.resolve(booklet)
    by_subject = answer_key.question_numbers_by_subject()

    subject_codes = list(subject_answers)
    for code in by_subject:
        if code not in subject_answers:
            warnings.append(f"no answers decoded for subject {code}")
            subject_codes.append(code)

    subjects: List[SubjectScoreResult] = []
    for code in subject_codes:
        question_numbers = by_subject.get(code, [])
        answers = subject_answers.get(code, [])
        if not question_numbers and answers:
            warnings.append(f"no answer key entries for subject {code}, {len(answers)} answers unscored")
            logger.warning("Subject %s missing from answer key", code)
            answers = []
        subjects.append(
            _score_subject(code, answers, question_numbers, resolved, config, warnings)
        )

    weighted = sum(s.weighted_net for s in subjects)
    raw_score = min(max(weighted, 0.0), config.max_raw_score)

    return ExamScoreResult(
        subjects=subjects,
        total_correct=sum(s.correct for s in subjects),
        total_incorrect=sum(s.incorrect for s in subjects),
        total_blank=sum(s.blank for s in subjects),
        total_net=sum(s.net for s in subjects),
        weighted_raw_score=raw_score,
        scaled_score=scale_score(raw_score, config),
        warnings=warnings,
    )


def score_record(
    record: ParsedStudentRecord,
    answer_key: AnswerKey,
    config: ScoringConfig,
) -> ExamScoreResult:
    """Score one decoded record with its own booklet."""
    return score_answers(record.subject_answers, answer_key, record.booklet, config)


def score_batch(
    result: DecodeResult,
    answer_key: AnswerKey,
    config: ScoringConfig,
) -> List[StudentScore]:
    """Score every record that was not rejected, in line order."""
    scores: List[StudentScore] = []
    for record in sorted(result.records, key=lambda r: r.line_number):
        if record.review_status == "REJECTED":
            continue
        scores.append(StudentScore(
            line_number=record.line_number,
            student_id=record.student_id,
            student_name=record.student_name,
            booklet=record.booklet,
            result=score_record(record, answer_key, config),
        ))
    logger.info(
        "Scored %d of %d records with %s", len(scores), len(result.records), config.name
    )
    return scores
