"""Answer key models with per-booklet overrides."""

from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, model_validator

from omr_scoring.models.record import Booklet, Letter


class AnswerKeyEntry(BaseModel):
    """Correct answer for one question, optionally varying by booklet."""
    question_no: int = Field(ge=1, description="Question number, stable across booklets")
    subject_code: str = Field(min_length=1, description="Canonical subject code, e.g. 'MAT'")
    correct_answer: Letter = Field(description="Correct letter for booklet A")
    per_booklet_correct_answer: Dict[Booklet, Letter] = Field(
        default_factory=dict,
        description="Correct letter for other booklets when it differs"
    )
    cancelled: bool = Field(default=False, description="Voided question, excluded from scoring")

    def answer_for(self, booklet: str) -> str:
        return self.per_booklet_correct_answer.get(booklet, self.correct_answer)


class AnswerKey(BaseModel):
    """Full answer key of an exam."""
    exam_type: Optional[str] = Field(default=None, description="Preset name, e.g. 'LGS'")
    entries: List[AnswerKeyEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_unique_questions(self) -> "AnswerKey":
        """Question numbers must be unique within a key."""
        seen = set()
        duplicates = set()
        for entry in self.entries:
            if entry.question_no in seen:
                duplicates.add(entry.question_no)
            seen.add(entry.question_no)
        if duplicates:
            raise ValueError(f"duplicate question numbers in answer key: {sorted(duplicates)}")
        return self

    def resolve(self, booklet: str) -> Dict[int, str]:
        """Flatten the key to question number -> correct letter for one booklet.

        Cancelled questions are left out.
        """
        return {
            e.question_no: e.answer_for(booklet)
            for e in self.entries
            if not e.cancelled
        }

    def question_numbers_by_subject(self) -> Dict[str, List[int]]:
        """Question numbers of each subject in ascending order, cancelled ones included."""
        grouped: Dict[str, List[int]] = {}
        for entry in sorted(self.entries, key=lambda e: e.question_no):
            grouped.setdefault(entry.subject_code, []).append(entry.question_no)
        return grouped

    @classmethod
    def from_letters(
        cls,
        layout: Sequence[Tuple[str, int]],
        letters: str,
        booklet_letters: Optional[Dict[str, str]] = None,
        exam_type: Optional[str] = None,
    ) -> "AnswerKey":
        """Build a key from a letter string laid out subject by subject.

        Args:
            layout: Ordered (subject_code, question_count) pairs
            letters: Correct letters for booklet A; 'X' marks a cancelled question
            booklet_letters: Optional booklet -> letter string for other booklets.
                An 'X' in any booklet cancels that question for every booklet.
            exam_type: Optional preset name stored on the key

        Returns:
            AnswerKey numbered from 1 in layout order

        Raises:
            ValueError: If a letter string does not match the layout length
        """
        expected = sum(count for _, count in layout)
        letters = letters.replace(" ", "").upper()
        booklet_letters = {
            b: s.replace(" ", "").upper() for b, s in (booklet_letters or {}).items()
        }
        for name, value in [("A", letters), *booklet_letters.items()]:
            if len(value) != expected:
                raise ValueError(
                    f"booklet {name} has {len(value)} answers, layout expects {expected}"
                )

        entries = []
        question_no = 1
        for subject_code, count in layout:
            for _ in range(count):
                idx = question_no - 1
                correct = letters[idx]
                cancelled = correct == "X" or any(s[idx] == "X" for s in booklet_letters.values())
                overrides = {
                    b: s[idx] for b, s in booklet_letters.items() if s[idx] != "X"
                }
                entries.append(AnswerKeyEntry(
                    question_no=question_no,
                    subject_code=subject_code,
                    correct_answer="A" if correct == "X" else correct,
                    per_booklet_correct_answer=overrides,
                    cancelled=cancelled,
                ))
                question_no += 1

        return cls(exam_type=exam_type, entries=entries)
