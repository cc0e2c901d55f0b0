"""Normalize Turkish labels, names and numeric fields read from optical reader lines."""

import re
import unicodedata
from typing import List

# Windows-1254 text mis-read as Latin-1 (and a few stray replacement bytes)
MOJIBAKE_MAPPINGS: dict[str, str] = {
    "Ý": "İ",
    "ý": "ı",
    "Þ": "Ş",
    "þ": "ş",
    "Ð": "Ğ",
    "ð": "ğ",
    "\u0000": "",
    "�": "",
}

TURKISH_UPPER: dict[str, str] = {
    "i": "İ",
    "ı": "I",
}

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f\u2028\u2029]")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def repair_mojibake(text: str) -> str:
    """Replace Latin-1 look-alikes of Turkish letters with the real letters."""
    for bad, good in MOJIBAKE_MAPPINGS.items():
        text = text.replace(bad, good)
    return text


def turkish_upper(text: str) -> str:
    """Upper-case with Turkish dotted/dotless i rules."""
    return "".join(TURKISH_UPPER.get(c, c) for c in text).upper()


def fold_text(text: str) -> str:
    """Case-fold and strip diacritics so 'İNKILAP' and 'inkılap' compare equal."""
    text = text.replace("İ", "i").replace("I", "i").replace("ı", "i")
    decomposed = unicodedata.normalize("NFKD", text.casefold())
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def label_tokens(label: str) -> List[str]:
    """Split a folded label into alphanumeric tokens."""
    return [t for t in _NON_ALNUM.split(fold_text(label)) if t]


def normalize_student_name(raw: str) -> str:
    """Repair encoding damage, drop digits, collapse spaces, upper-case."""
    name = repair_mojibake(raw)
    name = re.sub(r"\d+", " ", name)
    name = re.sub(r"\s+", " ", name).strip()
    return turkish_upper(name)


def digits_only(value: str) -> str:
    """Keep only ASCII digits."""
    return re.sub(r"[^0-9]", "", value)


def clean_line(raw: str) -> str:
    """Drop the line terminator and blank out control characters.

    Control characters are replaced one-for-one so column offsets stay valid.
    """
    return _CONTROL_CHARS.sub(" ", raw.rstrip("\r\n"))
