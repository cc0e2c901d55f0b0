"""Identity field extraction from fixed-width scanner lines.

Student number, name, national id, class and booklet are cut out of their
exact column ranges. A field's role comes from the template, or failing
that from its label.
"""

import logging
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

from omr_scoring.models.template import FieldDef
from omr_scoring.utils.normalizers import digits_only, fold_text, normalize_student_name

logger = logging.getLogger(__name__)

BOOKLET_LETTERS = "ABCD"

# Folded label fragments -> identity role, checked in order
ROLE_KEYWORDS: Tuple[Tuple[str, str], ...] = (
    ("kitapcik", "booklet"),
    ("booklet", "booklet"),
    ("tc", "national_id"),
    ("kimlik", "national_id"),
    ("national", "national_id"),
    ("ad soyad", "student_name"),
    ("adi soyadi", "student_name"),
    ("isim", "student_name"),
    ("name", "student_name"),
    ("sinif", "class_code"),
    ("sube", "class_code"),
    ("class", "class_code"),
    ("ogrenci no", "student_id"),
    ("numara", "student_id"),
    ("student", "student_id"),
    ("no", "student_id"),
)


class IdentityFields(NamedTuple):
    """Identity values read from one line."""
    student_id: str
    student_name: str
    national_id: Optional[str]
    class_code: Optional[str]
    booklet: Optional[str]
    extra_fields: Dict[str, str]
    warnings: List[str]


def infer_role(field: FieldDef) -> Optional[str]:
    """Role declared on the field, else the first keyword found in its label."""
    if field.role:
        return field.role
    folded = " ".join(fold_text(field.label).replace(".", " ").split())
    words = folded.split()
    for keyword, role in ROLE_KEYWORDS:
        if " " in keyword:
            if keyword in folded:
                return role
        elif keyword in words:
            return role
    return None


def extract_field(line: str, field: FieldDef) -> str:
    """Raw text of a field's columns, trimmed. Short lines yield what is there."""
    return line[field.start - 1:field.end].strip()


def parse_booklet(raw: str) -> Optional[str]:
    """Booklet letter from a booklet field.

    The last A-D letter wins: ``"DB"`` -> ``"B"``, ``"A"`` -> ``"A"``,
    ``"12"`` -> ``None``.
    """
    letters = [c for c in raw.upper() if c in BOOKLET_LETTERS]
    return letters[-1] if letters else None


def validate_national_id(value: str) -> bool:
    """Check a Turkish national id (TC kimlik no) checksum.

    Eleven digits, the first non-zero; digit 10 is
    ``(7 * sum(odd positions) - sum(even positions)) mod 10`` over the first
    nine digits and digit 11 is the sum of the first ten mod 10.
    """
    if len(value) != 11 or not value.isdigit() or value[0] == "0":
        return False
    digits = [int(c) for c in value]
    odd_sum = sum(digits[0:9:2])
    even_sum = sum(digits[1:8:2])
    if (odd_sum * 7 - even_sum) % 10 != digits[9]:
        return False
    return sum(digits[:10]) % 10 == digits[10]


def mask_national_id(value: str) -> str:
    """Mask the middle of a national id for display: ``123****8901``."""
    if len(value) != 11:
        return value
    return f"{value[:3]}****{value[7:]}"


def extract_identity(line: str, fields: Sequence[FieldDef]) -> IdentityFields:
    """Read every identity field of a line.

    Args:
        line: Cleaned scanner line
        fields: Identity fields of the template

    Returns:
        IdentityFields with data-quality warnings
    """
    values: Dict[str, str] = {}
    extra: Dict[str, str] = {}
    warnings: List[str] = []

    for field in fields:
        raw = extract_field(line, field)
        role = infer_role(field)
        if role is None:
            extra[field.label] = raw
        elif role in values and values[role]:
            warnings.append(f"duplicate {role} field '{field.label}' ignored")
        else:
            values[role] = raw

    raw_id = values.get("student_id", "")
    student_id = digits_only(raw_id) or raw_id
    student_name = normalize_student_name(values.get("student_name", ""))

    national_id: Optional[str] = None
    if values.get("national_id"):
        national_id = digits_only(values["national_id"]) or None
        if national_id is None:
            warnings.append("national id has no digits")
        elif len(national_id) != 11:
            warnings.append(f"national id has {len(national_id)} digits, expected 11")
        elif not validate_national_id(national_id):
            warnings.append(f"national id checksum failed: {mask_national_id(national_id)}")

    class_code = values.get("class_code") or None

    booklet: Optional[str] = None
    if "booklet" in values:
        raw_booklet = values["booklet"]
        booklet = parse_booklet(raw_booklet)
        letter_count = sum(1 for c in raw_booklet.upper() if c in BOOKLET_LETTERS)
        if letter_count > 2:
            warnings.append(f"ambiguous booklet field '{raw_booklet}', using '{booklet}'")
        if booklet is None:
            warnings.append("booklet missing")

    if not student_id:
        warnings.append("student id missing")
    if not student_name:
        warnings.append("student name missing")

    return IdentityFields(
        student_id=student_id,
        student_name=student_name,
        national_id=national_id,
        class_code=class_code,
        booklet=booklet,
        extra_fields=extra,
        warnings=warnings,
    )
