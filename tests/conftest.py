"""Shared fixtures: LGS template, answer keys and a fixed-width line builder."""

from typing import Callable

import pytest

from omr_scoring.config import get_settings
from omr_scoring.models.answer_key import AnswerKey
from omr_scoring.models.template import LGS_STANDARD, Template

LGS_SUBJECT_LAYOUT = [("TUR", 20), ("INK", 10), ("DIN", 10), ("ING", 10), ("MAT", 20), ("FEN", 20)]

# Booklet A and B keys; "E" never appears so it is always a wrong answer.
KEY_A = ("ABCD" * 23)[:90]
KEY_B = ("BCDA" * 23)[:90]

VALID_NATIONAL_ID = "10000000146"


def build_lgs_line(
    answers: str = KEY_A,
    student_id: str = "1234",
    name: str = "AHMET YILMAZ",
    national_id: str = VALID_NATIONAL_ID,
    booklet: str = "A",
) -> str:
    """Lay identity fields and answers out in the LGS_STANDARD columns."""
    return (
        student_id.ljust(10)[:10]
        + national_id.ljust(11)[:11]
        + name.ljust(30)[:30]
        + booklet.ljust(1)[:1]
        + answers
    )


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are cached; start every test from the current environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def lgs_template() -> Template:
    """Built-in LGS template: 90 questions starting at column 53."""
    return LGS_STANDARD


@pytest.fixture
def lgs_answer_key() -> AnswerKey:
    """LGS answer key with distinct booklet A and B answers."""
    return AnswerKey.from_letters(
        LGS_SUBJECT_LAYOUT, KEY_A, booklet_letters={"B": KEY_B}, exam_type="LGS"
    )


@pytest.fixture
def key_letters() -> str:
    """Booklet A correct letters of the LGS fixture key."""
    return KEY_A


@pytest.fixture
def booklet_b_letters() -> str:
    """Booklet B correct letters of the LGS fixture key."""
    return KEY_B


@pytest.fixture
def line_builder() -> Callable[..., str]:
    """Factory building LGS_STANDARD scanner lines."""
    return build_lgs_line
