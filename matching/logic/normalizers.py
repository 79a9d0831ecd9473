"""
Value Normalizers

Maps the spellings found in stored student and scholarship records onto
the canonical enum values the criteria compare against. Every normalizer
returns None for a value it cannot place, so callers fail closed instead
of raising.
"""

import logging
from typing import Any, Optional

from .constants import COLLEGE_NAMES, FILIPINO, College, STBracket, YearLevel

logger = logging.getLogger(__name__)


def normalize_place(value: str) -> str:
    """Case- and whitespace-insensitive key for free-text names."""
    return " ".join(value.split()).casefold()


def _text(raw: Any) -> str:
    return " ".join(str(raw).split()) if raw is not None else ""


# =============================================================================
# YEAR LEVEL
# =============================================================================

YEAR_LEVEL_ALIASES = {
    "1": YearLevel.FRESHMAN,
    "1st year": YearLevel.FRESHMAN,
    "first year": YearLevel.FRESHMAN,
    "2": YearLevel.SOPHOMORE,
    "2nd year": YearLevel.SOPHOMORE,
    "second year": YearLevel.SOPHOMORE,
    "3": YearLevel.JUNIOR,
    "3rd year": YearLevel.JUNIOR,
    "third year": YearLevel.JUNIOR,
    "4": YearLevel.SENIOR,
    "4th year": YearLevel.SENIOR,
    "fourth year": YearLevel.SENIOR,
    "5": YearLevel.GRADUATE,
    "5th year": YearLevel.GRADUATE,
    "graduate student": YearLevel.GRADUATE,
}


def normalize_year_level(raw: Any) -> Optional[str]:
    """
    Map stored year-level text onto YearLevel.

    Returns None (unknown) for anything unrecognized, so the student fails
    closed on year-level criteria instead of erroring.
    """
    text = _text(raw)
    if not text:
        return None
    for level in YearLevel:
        if text.casefold() == level.value.casefold():
            return level.value
    alias = YEAR_LEVEL_ALIASES.get(text.casefold())
    if alias:
        return alias.value
    logger.warning(f"Unrecognized year level: {raw!r}")
    return None


# =============================================================================
# COLLEGE
# =============================================================================

_COLLEGE_BY_NAME = {normalize_place(name): code for code, name in COLLEGE_NAMES.items()}


def normalize_college(raw: Any) -> Optional[str]:
    """Accepts the unit code ("CAS") or its full name ("College of Arts and Sciences")."""
    text = _text(raw)
    if not text:
        return None
    code = text.upper()
    if code in College.__members__:
        return College[code].value
    by_name = _COLLEGE_BY_NAME.get(normalize_place(text))
    if by_name:
        return by_name
    logger.warning(f"Unrecognized college: {raw!r}")
    return None


# =============================================================================
# ST BRACKET
# =============================================================================

ST_BRACKET_ALIASES = {
    "FDS": STBracket.FULL_DISCOUNT_WITH_STIPEND,
    "FD": STBracket.FULL_DISCOUNT,
    "ND": STBracket.NO_DISCOUNT,
    "80% PARTIAL DISCOUNT": STBracket.PD80,
    "60% PARTIAL DISCOUNT": STBracket.PD60,
    "40% PARTIAL DISCOUNT": STBracket.PD40,
    "20% PARTIAL DISCOUNT": STBracket.PD20,
}


def normalize_st_bracket(raw: Any) -> Optional[str]:
    """Short codes (FDS, PD80) and full names map to the same bracket."""
    text = _text(raw).upper()
    if not text:
        return None
    for bracket in STBracket:
        if text == bracket.value.upper():
            return bracket.value
    alias = ST_BRACKET_ALIASES.get(text)
    if alias:
        return alias.value
    logger.warning(f"Unrecognized ST bracket: {raw!r}")
    return None


# =============================================================================
# CITIZENSHIP
# =============================================================================

FILIPINO_ALIASES = {"filipino", "filipina", "pilipino", "philippine", "philippines"}


def normalize_citizenship(raw: Any) -> Optional[str]:
    text = _text(raw)
    if not text:
        return None
    if text.casefold() in FILIPINO_ALIASES:
        return FILIPINO
    return text
