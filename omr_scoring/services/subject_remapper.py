"""Subject remapping of decoded answer segments.

Segment labels are free text typed by whoever built the template
("Türkçe", "TURKCE", "T.C. İnkılap Tarihi ve Atatürkçülük", ...). They are
folded and matched against a keyword table to a canonical subject code.
Segments sharing a subject are concatenated in encounter order.
"""

import logging
from typing import Dict, List, NamedTuple, Optional, Sequence, Set, Tuple

from omr_scoring.models.record import DecodedSegment, SubjectRemapResult
from omr_scoring.utils.normalizers import label_tokens

logger = logging.getLogger(__name__)


class SubjectKeywords(NamedTuple):
    """Keywords identifying one subject.

    ``words`` must equal a whole label token; ``prefixes`` may start one
    ("matematik" matches "matematiği" after folding only as a prefix).
    """
    code: str
    words: Tuple[str, ...] = ()
    prefixes: Tuple[str, ...] = ()


SUBJECT_KEYWORDS: Tuple[SubjectKeywords, ...] = (
    SubjectKeywords("TUR", words=("tur", "turkish"), prefixes=("turkce",)),
    SubjectKeywords("MAT", words=("mat", "math"), prefixes=("matemati",)),
    SubjectKeywords("FEN", words=("fen", "science"), prefixes=()),
    SubjectKeywords("INK", words=("ink",), prefixes=("inkilap", "ataturkculuk")),
    SubjectKeywords("DIN", words=("din", "religion"), prefixes=("ahlak",)),
    SubjectKeywords("ING", words=("ing", "english"), prefixes=("ingilizce", "yabanci")),
    SubjectKeywords("SOS", words=("sos", "social"), prefixes=("sosyal",)),
    SubjectKeywords("FIZ", words=("fiz",), prefixes=("fizik",)),
    SubjectKeywords("KIM", words=("kim",), prefixes=("kimya",)),
    SubjectKeywords("BIY", words=("biy",), prefixes=("biyoloji",)),
    SubjectKeywords("EDB", words=("edb",), prefixes=("edebiyat",)),
    SubjectKeywords("TAR", words=("tar", "tarih"), prefixes=()),
    SubjectKeywords("COG", words=("cog",), prefixes=("cografya",)),
    SubjectKeywords("FEL", words=("fel",), prefixes=("felsefe",)),
)

def matching_subjects(
    label: str,
    keywords: Sequence[SubjectKeywords] = SUBJECT_KEYWORDS,
) -> List[str]:
    """All subject codes whose keywords occur in the label, in table order."""
    tokens = label_tokens(label)
    matches: List[str] = []
    for entry in keywords:
        hit = any(t in entry.words for t in tokens) or any(
            t.startswith(p) for t in tokens for p in entry.prefixes
        )
        if hit and entry.code not in matches:
            matches.append(entry.code)
    return matches


def resolve_subject_code(
    label: str,
    keywords: Sequence[SubjectKeywords] = SUBJECT_KEYWORDS,
) -> Optional[str]:
    """Subject code for a label, or None when it matches no subject or several."""
    matches = matching_subjects(label, keywords)
    return matches[0] if len(matches) == 1 else None


def remap_subjects(
    segments: Sequence[DecodedSegment],
    expected_total_questions: int,
    keywords: Sequence[SubjectKeywords] = SUBJECT_KEYWORDS,
) -> SubjectRemapResult:
    """Group decoded segment answers by subject code.

    Args:
        segments: Decoded segments in template order
        expected_total_questions: Question count the subject buckets should sum to
        keywords: Subject keyword table

    Returns:
        SubjectRemapResult; unmapped segments appear only in ``flat_answers``
    """
    subject_answers: Dict[str, List[Optional[str]]] = {}
    flat: List[Optional[str]] = []
    unmapped: List[str] = []
    warnings: List[str] = []
    seen_labels: Set[str] = set()

    for segment in segments:
        flat.extend(segment.answers)
        matches = matching_subjects(segment.label, keywords)

        if len(matches) == 1:
            subject_answers.setdefault(matches[0], []).extend(segment.answers)
            continue

        unmapped.append(segment.label)
        if segment.label in seen_labels:
            continue
        seen_labels.add(segment.label)
        if matches:
            warnings.append(
                f"ambiguous subject label '{segment.label}' matches {', '.join(matches)}"
            )
        else:
            warnings.append(f"unknown subject label '{segment.label}'")
        logger.debug("Segment '%s' not mapped to a subject (matches: %s)", segment.label, matches)

    mapped_slots = sum(len(a) for a in subject_answers.values())
    if mapped_slots != expected_total_questions:
        warnings.append(
            f"subject slot count mismatch: expected {expected_total_questions}, got {mapped_slots}"
        )

    return SubjectRemapResult(
        subject_answers=subject_answers,
        flat_answers=flat,
        unmapped_labels=unmapped,
        warnings=warnings,
    )
