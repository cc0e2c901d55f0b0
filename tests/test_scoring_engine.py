"""Tests for net, weighted and scaled scoring."""

import pytest

from omr_scoring.models.answer_key import AnswerKey, AnswerKeyEntry
from omr_scoring.models.scoring import LGS, TYT, ScoringConfig
from omr_scoring.services.record_assembler import decode_line, decode_text
from omr_scoring.services.scoring_engine import (
    calculate_net,
    scale_score,
    score_answers,
    score_batch,
    score_record,
)


def split_subjects(letters):
    """Slice 90 LGS answers into the subject map."""
    layout = [("TUR", 20), ("INK", 10), ("DIN", 10), ("ING", 10), ("MAT", 20), ("FEN", 20)]
    answers = [None if c == "-" else c for c in letters]
    result, pos = {}, 0
    for code, count in layout:
        result[code] = answers[pos:pos + count]
        pos += count
    return result


class TestFormulas:
    """Tests for the net and scaling formulas."""

    def test_net_with_penalty(self):
        assert calculate_net(66, 18, 3) == pytest.approx(60.0)

    def test_net_tyt_penalty(self):
        assert calculate_net(30, 8, 4) == pytest.approx(28.0)

    def test_net_without_penalty(self):
        """Test that a divisor of 0 disables the penalty."""
        assert calculate_net(10, 5, 0) == 10.0

    def test_net_can_be_negative(self):
        assert calculate_net(0, 6, 3) == pytest.approx(-2.0)

    @pytest.mark.parametrize("raw,expected", [
        (0.0, 100.0),
        (270.0, 500.0),
        (135.0, 300.0),
        (-10.0, 100.0),
        (400.0, 500.0),
    ])
    def test_scale_score_clamped(self, raw, expected):
        assert scale_score(raw, LGS) == pytest.approx(expected)


class TestScoreAnswersLGS:
    """End-to-end LGS scenarios."""

    def test_all_correct(self, lgs_answer_key, key_letters):
        """Test that a perfect sheet scores 270 raw and 500 scaled."""
        result = score_answers(split_subjects(key_letters), lgs_answer_key, "A", LGS)

        assert result.weighted_raw_score == pytest.approx(270.0)
        assert result.scaled_score == pytest.approx(500.0)
        assert result.total_correct == 90
        assert result.total_net == pytest.approx(90.0)
        assert result.warnings == []

    def test_all_blank(self, lgs_answer_key):
        """Test that an empty sheet nets 0 and scores the minimum."""
        result = score_answers(split_subjects("-" * 90), lgs_answer_key, "A", LGS)

        assert all(s.net == 0 for s in result.subjects)
        assert result.total_blank == 90
        assert result.weighted_raw_score == 0.0
        assert result.scaled_score == pytest.approx(100.0)

    def test_mixed(self, lgs_answer_key, key_letters):
        """Test 66 correct, 18 incorrect and 6 blank."""
        letters = key_letters[:66] + "E" * 18 + "-" * 6
        result = score_answers(split_subjects(letters), lgs_answer_key, "A", LGS)

        assert result.total_correct == 66
        assert result.total_incorrect == 18
        assert result.total_blank == 6
        assert sum(s.net for s in result.subjects) == pytest.approx(60.0)
        # TUR/INK/DIN/ING perfect, MAT 16-4, FEN 0-14 with 6 blank
        assert result.subject("MAT").net == pytest.approx(16 - 4 / 3)
        assert result.subject("FEN").net == pytest.approx(-14 / 3)
        assert result.weighted_raw_score == pytest.approx(150.0)
        assert result.scaled_score == pytest.approx(100 + 150 * 400 / 270)

    def test_counts_add_up(self, lgs_answer_key, key_letters):
        """Test correct + incorrect + blank == total per subject."""
        letters = key_letters[:30] + "E-" * 30
        result = score_answers(split_subjects(letters), lgs_answer_key, "A", LGS)

        for subject in result.subjects:
            assert subject.correct + subject.incorrect + subject.blank == subject.total_questions
            assert subject.net == pytest.approx(subject.correct - subject.incorrect / 3)

    def test_negative_weighted_raw_clamped(self, lgs_answer_key):
        """Test that a sheet of wrong answers never goes below the minimum."""
        result = score_answers(split_subjects("E" * 90), lgs_answer_key, "A", LGS)

        assert result.total_net < 0
        assert result.weighted_raw_score == 0.0
        assert result.scaled_score == pytest.approx(100.0)

    def test_booklet_b_uses_b_answers(self, lgs_answer_key, key_letters, booklet_b_letters):
        """Test that booklet B is scored against its own key."""
        as_b = score_answers(split_subjects(booklet_b_letters), lgs_answer_key, "B", LGS)
        a_answers_on_b = score_answers(split_subjects(key_letters), lgs_answer_key, "B", LGS)

        assert as_b.total_correct == 90
        assert a_answers_on_b.total_correct == 0

    def test_missing_booklet_defaults_to_a(self, lgs_answer_key, key_letters):
        """Test that a record without a booklet is scored as booklet A."""
        result = score_answers(split_subjects(key_letters), lgs_answer_key, None, LGS)

        assert result.total_correct == 90
        assert "booklet missing, scored with booklet A" in result.warnings

    def test_subject_order_independence(self, lgs_answer_key, key_letters):
        """Test that map insertion order does not change the score."""
        subjects = split_subjects(key_letters[:45] + "E" * 45)
        reordered = dict(reversed(list(subjects.items())))

        first = score_answers(subjects, lgs_answer_key, "A", LGS)
        second = score_answers(reordered, lgs_answer_key, "A", LGS)

        assert first.weighted_raw_score == pytest.approx(second.weighted_raw_score)
        assert {s.subject_code: s.net for s in first.subjects} == \
            {s.subject_code: s.net for s in second.subjects}


class TestScoringErrors:
    """Tests for scoring input problems."""

    def key(self, *entries):
        return AnswerKey(entries=[
            AnswerKeyEntry(question_no=n, subject_code=code, correct_answer=letter)
            for n, code, letter in entries
        ])

    def test_extra_answers_unscored(self):
        """Test that answers beyond the key's questions are excluded with a warning."""
        key = self.key((1, "MAT", "A"), (2, "MAT", "B"))
        result = score_answers({"MAT": ["A", "B", "C"]}, key, "A", LGS)

        mat = result.subject("MAT")
        assert mat.total_questions == 2
        assert mat.correct == 2
        assert any("no answer key entry for answer 3" in w for w in result.warnings)

    def test_unknown_subject_weight_zero(self):
        """Test that an unweighted subject is reported with weight 0."""
        key = self.key((1, "BIY", "A"), (2, "MAT", "A"))
        result = score_answers({"BIY": ["A"], "MAT": ["A"]}, key, "A", LGS)

        biy = result.subject("BIY")
        assert biy.correct == 1
        assert biy.weight == 0.0
        assert biy.weighted_net == 0.0
        assert result.weighted_raw_score == pytest.approx(4.0)
        assert "no weight configured for subject BIY, using 0" in result.warnings

    def test_subject_missing_from_key(self):
        """Test that a decoded subject absent from the key is unscored."""
        key = self.key((1, "MAT", "A"))
        result = score_answers({"MAT": ["A"], "FEN": ["A", "B"]}, key, "A", LGS)

        fen = result.subject("FEN")
        assert fen.total_questions == 0
        assert any("no answer key entries for subject FEN" in w for w in result.warnings)

    def test_subject_missing_from_record(self):
        """Test that a key subject with no decoded answers is all blank."""
        key = self.key((1, "MAT", "A"), (2, "FEN", "B"))
        result = score_answers({"MAT": ["A"]}, key, "A", LGS)

        fen = result.subject("FEN")
        assert fen.blank == 1
        assert fen.net == 0
        assert "no answers decoded for subject FEN" in result.warnings

    def test_fewer_answers_than_questions(self):
        """Test that questions without a column count as blank."""
        key = self.key((1, "MAT", "A"), (2, "MAT", "B"), (3, "MAT", "C"))
        result = score_answers({"MAT": ["A"]}, key, "A", LGS)

        assert result.subject("MAT").blank == 2
        assert result.subject("MAT").total_questions == 3

    def test_cancelled_question_skipped(self):
        """Test that voided questions are excluded from every count."""
        key = AnswerKey(entries=[
            AnswerKeyEntry(question_no=1, subject_code="MAT", correct_answer="A"),
            AnswerKeyEntry(question_no=2, subject_code="MAT", correct_answer="B", cancelled=True),
            AnswerKeyEntry(question_no=3, subject_code="MAT", correct_answer="C"),
        ])
        result = score_answers({"MAT": ["A", "D", "D"]}, key, "A", LGS)

        mat = result.subject("MAT")
        assert (mat.correct, mat.incorrect, mat.blank) == (1, 1, 0)
        assert mat.total_questions == 2

    def test_penalty_free_config(self):
        """Test scoring with a custom config that has no penalty."""
        config = ScoringConfig(
            penalty_divisor=0, subject_weights={"MAT": 1.0}, max_raw_score=2, score_range=(0, 100)
        )
        key = self.key((1, "MAT", "A"), (2, "MAT", "B"))
        result = score_answers({"MAT": ["A", "C"]}, key, "A", config)

        assert result.subject("MAT").net == 1.0
        assert result.scaled_score == pytest.approx(50.0)


class TestScoreRecords:
    """Tests for scoring decoded records."""

    def test_score_record_uses_record_booklet(self, lgs_template, lgs_answer_key, line_builder, booklet_b_letters):
        """Test that a decoded booklet B sheet is scored against booklet B."""
        record = decode_line(line_builder(answers=booklet_b_letters, booklet="B"), lgs_template)

        result = score_record(record, lgs_answer_key, LGS)

        assert result.scaled_score == pytest.approx(500.0)

    def test_score_batch_skips_rejected(self, lgs_template, lgs_answer_key, line_builder, key_letters):
        """Test that rejected lines are excluded and order follows line numbers."""
        text = "\n".join([
            line_builder(student_id="1"),
            line_builder(student_id="2", answers="-" * 90),
            line_builder(student_id="3", answers=key_letters[:66] + "E" * 18 + "-" * 6),
        ])
        scores = score_batch(decode_text(text, lgs_template), lgs_answer_key, LGS)

        assert [s.student_id for s in scores] == ["1", "3"]
        assert [s.line_number for s in scores] == [1, 3]
        assert scores[0].result.scaled_score == pytest.approx(500.0)
        assert scores[1].result.total_net == pytest.approx(60.0)

    def test_tyt_preset(self):
        """Test a TYT sheet with every answer correct."""
        layout = [("TUR", 40), ("SOS", 20), ("MAT", 40), ("FEN", 20)]
        letters = ("ABCDE" * 24)[:120]
        key = AnswerKey.from_letters(layout, letters)
        answers, pos = {}, 0
        for code, count in layout:
            answers[code] = list(letters[pos:pos + count])
            pos += count

        result = score_answers(answers, key, "A", TYT)

        assert result.weighted_raw_score == pytest.approx(TYT.max_raw_score)
        assert result.scaled_score == pytest.approx(500.0)
