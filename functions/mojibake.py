"""Repair Spanish filenames mangled by a charset mismatch during upload.

Browsers on some platforms send the combining accent of a decomposed
character (NFD) as raw UTF-8, which the server then reads as Latin-1. The
accent shows up as a marker ``Ì`` (U+00CC), sometimes followed by a ``~``
continuation and a stray C1 control byte, e.g.:

    corazoÌn.txt   -> corazón.txt
    senÌ~or.txt    -> señor.txt
    seÌ~orÌ~a.pdf  -> señora.pdf

Repair is a table of regex substitutions applied in order. Order matters:
longer, more specific patterns run first so the generic ones don't eat
characters they need.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

MARKER = "\u00cc"  # Ì
CONTINUATION = "~"

IDIOM = "idiom"
CONSONANT_MARK_VOWEL = "consonant_mark_vowel"
VOWEL_MARK_VOWEL = "vowel_mark_vowel"
VOWEL_MARK_CONSONANT = "vowel_mark_consonant"
MARK_ACCENTED_VOWEL = "mark_accented_vowel"
MARK_ENYE = "mark_enye"
VOWEL_ACCENT = "vowel_accent"
CONSONANT_ENYE = "consonant_enye"
RESIDUAL = "residual"
STRAY_MARKER = "stray_marker"
TITLE_FIXUP = "title_fixup"
NOR_SUFFIX = "nor_suffix"

CATEGORIES = (
    IDIOM,
    CONSONANT_MARK_VOWEL,
    VOWEL_MARK_VOWEL,
    VOWEL_MARK_CONSONANT,
    MARK_ACCENTED_VOWEL,
    MARK_ENYE,
    VOWEL_ACCENT,
    CONSONANT_ENYE,
    RESIDUAL,
    STRAY_MARKER,
    TITLE_FIXUP,
    NOR_SUFFIX,
)

ACCENTED = {
    "a": "á", "e": "é", "i": "í", "o": "ó", "u": "ú",
    "A": "Á", "E": "É", "I": "Í", "O": "Ó", "U": "Ú",
}
ENYE = {"n": "ñ", "N": "Ñ"}

_CONSONANTS = "bcdfghjklmnpqrstvwxyz"
_CONS = f"[{_CONSONANTS}{_CONSONANTS.upper()}]"
_VOWEL = "[aeiouAEIOU]"
_MARK = re.escape(MARKER)
_MARK_SEQ = _MARK + re.escape(CONTINUATION)
# Characters a corrupted span can leave behind once the markers are gone
_CORRUPT_SPAN = "[ñÑ\x80-\x9f]+"

Replacement = str | Callable[[re.Match], str]


@dataclass(frozen=True)
class Rule:
    category: str
    pattern: re.Pattern
    replacement: Replacement

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)


def _rule(category: str, pattern: str, replacement: Replacement) -> Rule:
    return Rule(category, re.compile(pattern), replacement)


def _literal(category: str, corrupted: str, fixed: str) -> Rule:
    return Rule(category, re.compile(re.escape(corrupted)), fixed)


def _accent_group(group: int) -> Callable[[re.Match], str]:
    return lambda m: ACCENTED[m.group(group)]


def _enye_group(group: int) -> Callable[[re.Match], str]:
    return lambda m: ENYE[m.group(group)]


_IDIOMS = [
    ("seÌ~orÌ~a", "señora"),
    ("SEÌ~ORÌ~A", "SEÑORA"),
    ("aÌrbolÌ~s", "árboles"),
    ("AÌRBOLÌ~S", "ÁRBOLES"),
    ("AÌR", "ÁR"),
    ("EÌR", "ÉR"),
    ("OÌR", "ÓR"),
    ("UÌR", "ÚR"),
    ("aÌo", "año"),
    ("AÌO", "AÑO"),
    ("eÌ~o", "eño"),
    ("EÌ~O", "EÑO"),
    ("Ì~a", "á"),
    ("Ì~A", "Á"),
]

RULES: tuple[Rule, ...] = (
    *(_literal(IDIOM, corrupted, fixed) for corrupted, fixed in _IDIOMS),
    _rule(CONSONANT_MARK_VOWEL, f"({_CONS}){_MARK_SEQ}({_VOWEL})", r"\1ñ\2"),
    _rule(VOWEL_MARK_VOWEL, f"({_VOWEL}){_MARK_SEQ}({_VOWEL})", r"\1á\2"),
    _rule(VOWEL_MARK_CONSONANT, f"({_VOWEL}){_MARK_SEQ}({_CONS})", r"\1ñ\2"),
    _rule(MARK_ACCENTED_VOWEL, f"{_MARK_SEQ}([eiouEIOU])", _accent_group(1)),
    _rule(MARK_ENYE, f"([nN]){_MARK_SEQ}", _enye_group(1)),
    _rule(MARK_ENYE, _MARK_SEQ, "ñ"),
    _rule(VOWEL_ACCENT, f"([aeouAEOU]){_MARK}(?={_VOWEL}|{_CONS})", _accent_group(1)),
    _rule(CONSONANT_ENYE, f"([{_CONSONANTS}i{_CONSONANTS.upper()}I]){_MARK}({_VOWEL})", r"\1ñ\2"),
    _rule(RESIDUAL, f"({_VOWEL}){_MARK}\x81?", _accent_group(1)),
    _rule(RESIDUAL, f"([nN]){_MARK}\x83?", _enye_group(1)),
    _rule(STRAY_MARKER, f"{_MARK}[\x80-\x9f]?|{re.escape(CONTINUATION)}", ""),
    _literal(
        TITLE_FIXUP,
        "Evaluación Desempenño por Competencias",
        "Evaluación Desempeño por Competencias",
    ),
    _rule(NOR_SUFFIX, f"n{_CORRUPT_SPAN}or", "ñor"),
    _rule(NOR_SUFFIX, f"N{_CORRUPT_SPAN}or", "Ñor"),
    _rule(NOR_SUFFIX, f"N{_CORRUPT_SPAN}OR", "ÑOR"),
)


def rules_for(category: str) -> tuple[Rule, ...]:
    """Return the rules of a single category, in table order."""
    if category not in CATEGORIES:
        raise ValueError(f"Unknown rule category: {category}")
    return tuple(rule for rule in RULES if rule.category == category)


def apply_rules(text: str, rules=RULES) -> str:
    """Apply each rule to every occurrence in text, in the given order."""
    for rule in rules:
        text = rule.apply(text)
    return text


def repair_mojibake(name, log: logging.Logger | None = None):
    """Restore accented vowels and ñ in a corrupted filename.

    None and "" are returned as-is. Names without the marker come back
    unchanged, tildes included. If a substitution fails, the error is
    logged and the input is returned untouched.
    """
    if not name:
        return name
    if isinstance(name, str) and not is_corrupted(name):
        return name

    log = log or logger
    try:
        return apply_rules(name)
    except Exception:
        log.exception(f"Failed to repair filename {name!r}")
        return name


def is_corrupted(name) -> bool:
    """True if name still carries the corruption marker."""
    return isinstance(name, str) and MARKER in name
