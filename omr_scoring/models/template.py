"""Pydantic models describing fixed-width optical reader templates.

A template maps 1-indexed, inclusive character ranges of a scanner line to
identity fields (student number, name, booklet, ...) or answer segments.
Ranges are validated at construction; whether the template as a whole is
usable is reported by ``Template.structural_errors`` so that a bad template
degrades into rejected records instead of an exception.
"""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

FieldKind = Literal["identity", "answer_segment"]
IdentityRole = Literal["student_id", "student_name", "national_id", "class_code", "booklet"]


class FieldDef(BaseModel):
    """A single named character range on the scanner line."""
    model_config = ConfigDict(frozen=True)

    label: str = Field(description="Human readable label, e.g. 'Türkçe' or 'Öğrenci No'")
    kind: FieldKind = Field(description="'identity' for student data, 'answer_segment' for answers")
    start: int = Field(ge=1, description="1-indexed inclusive start column")
    end: int = Field(ge=1, description="1-indexed inclusive end column")
    role: Optional[IdentityRole] = Field(
        default=None,
        description="Identity role; inferred from the label when omitted"
    )

    @model_validator(mode="after")
    def check_range(self) -> "FieldDef":
        """Reject ranges that end before they start."""
        if self.end < self.start:
            raise ValueError(
                f"field '{self.label}' ends before it starts ({self.start}-{self.end})"
            )
        return self

    @property
    def width(self) -> int:
        return self.end - self.start + 1


class Template(BaseModel):
    """Complete line layout for one optical reader export format."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(default="custom", description="Template name")
    total_questions: int = Field(ge=0, description="Number of questions on the sheet")
    fields: List[FieldDef] = Field(default_factory=list, description="Fields in template order")

    @property
    def answer_segments(self) -> List[FieldDef]:
        return [f for f in self.fields if f.kind == "answer_segment"]

    @property
    def identity_fields(self) -> List[FieldDef]:
        return [f for f in self.fields if f.kind == "identity"]

    @property
    def line_width(self) -> int:
        """Widest column any field reaches."""
        return max((f.end for f in self.fields), default=0)

    def structural_errors(self) -> List[str]:
        """List problems that make the template unusable for decoding.

        Returns:
            Error messages; empty when the template can be decoded against.
        """
        errors: List[str] = []
        if not self.answer_segments:
            errors.append(f"template '{self.name}' defines no answer segment")
        return errors


# =============================================================================
# PRESET TEMPLATES
# =============================================================================

def _segments(first_column: int, layout: List[tuple]) -> List[FieldDef]:
    fields = []
    column = first_column
    for label, count in layout:
        fields.append(FieldDef(
            label=label, kind="answer_segment", start=column, end=column + count - 1
        ))
        column += count
    return fields


LGS_LAYOUT = [
    ("Türkçe", 20),
    ("T.C. İnkılap Tarihi ve Atatürkçülük", 10),
    ("Din Kültürü ve Ahlak Bilgisi", 10),
    ("İngilizce", 10),
    ("Matematik", 20),
    ("Fen Bilimleri", 20),
]

TYT_LAYOUT = [
    ("Türkçe", 40),
    ("Sosyal Bilimler", 20),
    ("Temel Matematik", 40),
    ("Fen Bilimleri", 20),
]

# Common ministry export: number, national id, class, booklet, name, answers.
MEB_STANDARD = Template(
    name="MEB_STANDARD",
    total_questions=90,
    fields=[
        FieldDef(label="Öğrenci No", kind="identity", start=10, end=13, role="student_id"),
        FieldDef(label="TC Kimlik No", kind="identity", start=15, end=25, role="national_id"),
        FieldDef(label="Sınıf", kind="identity", start=26, end=27, role="class_code"),
        FieldDef(label="Kitapçık", kind="identity", start=28, end=28, role="booklet"),
        FieldDef(label="Ad Soyad", kind="identity", start=30, end=54, role="student_name"),
        *_segments(55, LGS_LAYOUT),
    ],
)

# Older national exam sheets: number, national id, name, booklet, answers.
LGS_STANDARD = Template(
    name="LGS_STANDARD",
    total_questions=90,
    fields=[
        FieldDef(label="Öğrenci No", kind="identity", start=1, end=10, role="student_id"),
        FieldDef(label="TC Kimlik No", kind="identity", start=11, end=21, role="national_id"),
        FieldDef(label="Ad Soyad", kind="identity", start=22, end=51, role="student_name"),
        FieldDef(label="Kitapçık", kind="identity", start=52, end=52, role="booklet"),
        *_segments(53, LGS_LAYOUT),
    ],
)

TYT_STANDARD = Template(
    name="TYT_STANDARD",
    total_questions=120,
    fields=[
        FieldDef(label="Öğrenci No", kind="identity", start=1, end=10, role="student_id"),
        FieldDef(label="TC Kimlik No", kind="identity", start=11, end=21, role="national_id"),
        FieldDef(label="Ad Soyad", kind="identity", start=22, end=51, role="student_name"),
        FieldDef(label="Kitapçık", kind="identity", start=52, end=52, role="booklet"),
        *_segments(53, TYT_LAYOUT),
    ],
)

# Short student number first. The answer block is 100 columns wide; the
# LGS subjects fill the first 90.
STUDENT_FIRST = Template(
    name="STUDENT_FIRST",
    total_questions=90,
    fields=[
        FieldDef(label="Öğrenci No", kind="identity", start=1, end=5, role="student_id"),
        FieldDef(label="Ad Soyad", kind="identity", start=6, end=30, role="student_name"),
        FieldDef(label="TC Kimlik No", kind="identity", start=31, end=41, role="national_id"),
        FieldDef(label="Kitapçık", kind="identity", start=42, end=42, role="booklet"),
        *_segments(43, LGS_LAYOUT),
    ],
)

# K12Net school system export, national id first.
K12NET = Template(
    name="K12NET",
    total_questions=90,
    fields=[
        FieldDef(label="TC Kimlik No", kind="identity", start=1, end=11, role="national_id"),
        FieldDef(label="Öğrenci No", kind="identity", start=12, end=21, role="student_id"),
        FieldDef(label="Ad Soyad", kind="identity", start=22, end=61, role="student_name"),
        FieldDef(label="Sınıf", kind="identity", start=62, end=66, role="class_code"),
        FieldDef(label="Kitapçık", kind="identity", start=67, end=67, role="booklet"),
        *_segments(68, LGS_LAYOUT),
    ],
)

PRESET_TEMPLATES: Dict[str, Template] = {
    t.name: t for t in (MEB_STANDARD, LGS_STANDARD, TYT_STANDARD, STUDENT_FIRST, K12NET)
}
