"""
Helpers for turning free-form maritime rank text into short display codes.

⚠️  Everything here is total: unknown, blank or garbage input still yields a
    deterministic, non-empty code.
"""

import re
from typing import Dict, Optional, Tuple

# Canonical rank -> display code (keys are lower-case, single-spaced)
RANK_ABBREVIATIONS: Dict[str, str] = {
    "chief engineer": "CE",
    "second engineer": "2E",
    "third engineer": "3E",
    "fourth engineer": "4E",
    "first engineer": "1E",
    "junior engineer": "JE",
    "engine cadet": "E/C",
    "deck cadet": "D/C",
    "electrical engineer": "ETO",
    "electro technical officer": "ETO",
    "master": "CAPT",
    "captain": "CAPT",
    "chief officer": "C/O",
    "chief mate": "C/O",
    "first officer": "1O",
    "second officer": "2/O",
    "third officer": "3/O",
    "fourth officer": "4O",
    "trainee": "TRN",
    "other": "OTHER",
    "bosun": "BSN",
    "able seaman": "AB",
    "ordinary seaman": "OS",
    "oiler": "OLR",
    "wiper": "WPR",
    "cook": "CK",
    "steward": "STW",
    "radio officer": "RO",
    "electrician": "ELE",
    "fitter": "FIT",
    "officer": "OFF",
    "engineer": "ENG",
    "crew": "CREW",
}

# Longest keys first so "chief engineer" wins over "engineer"
_KEYS_BY_LENGTH = sorted(RANK_ABBREVIATIONS, key=len, reverse=True)

_ORDINALS: Tuple[Tuple[str, str, str], ...] = (
    ("chief", "chief", "C"),
    ("first", "first", "1"), ("1st", "first", "1"),
    ("second", "second", "2"), ("2nd", "second", "2"),
    ("third", "third", "3"), ("3rd", "third", "3"),
    ("fourth", "fourth", "4"), ("4th", "fourth", "4"),
    ("fifth", "fifth", "5"), ("5th", "fifth", "5"),
)

UNKNOWN_RANK = "---"


def _normalize(rank: str) -> str:
    text = rank.strip().lower().replace("_", " ")
    return re.sub(r"\s+", " ", text)


def _ordinal_code(text: str) -> Optional[str]:
    """'2nd eng' style heuristics, spelled out against the table ('3rd officer' -> '3/O')."""
    words = re.findall(r"[a-z0-9]+", text)
    if any(w.startswith("engineer") or w == "eng" for w in words):
        role, suffix = "engineer", "E"
    elif any(w.startswith("officer") or w == "mate" for w in words):
        role, suffix = "officer", "O"
    else:
        return None
    for token, word, prefix in _ORDINALS:
        if token in words:
            return RANK_ABBREVIATIONS.get(f"{word} {role}", f"{prefix}{suffix}")
    return None


def abbreviate_rank(rank: Optional[str]) -> str:
    """
    Map a rank string to a short display code.

    Lookup order: exact table match, table key contained in the text,
    ordinal heuristics ("2nd engineer"), then the first three characters.
    """
    if not isinstance(rank, str):
        rank = "" if rank is None else str(rank)
    text = _normalize(rank)
    if not text:
        return UNKNOWN_RANK

    code = RANK_ABBREVIATIONS.get(text)
    if code:
        return code

    for key in _KEYS_BY_LENGTH:
        if key in text:
            # "2nd engineer" contains "engineer"; prefer the ordinal code
            if key in ("engineer", "officer"):
                ordinal = _ordinal_code(text)
                if ordinal:
                    return ordinal
            return RANK_ABBREVIATIONS[key]

    ordinal = _ordinal_code(text)
    if ordinal:
        return ordinal

    return rank.strip()[:3].upper()


def format_hover_label(full_name: Optional[str], rank: Optional[str]) -> str:
    """Info-card title: 'Name (CODE)', or just the name when no rank is set."""
    name = (full_name or "").strip() or "Unknown sailor"
    if rank and rank.strip():
        return f"{name} ({abbreviate_rank(rank)})"
    return name
