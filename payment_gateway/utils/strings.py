"""Name normalisation and edit-distance helpers"""

import re
from typing import List

HONORIFICS = {"mr", "mrs", "ms", "miss", "dr"}
LEGAL_SUFFIXES = {"ltd", "limited", "plc", "llp", "llc", "inc", "co", "company"}

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def name_tokens(name: str) -> List[str]:
    """
    Tokenise a person or business name for comparison.

    Case-folds, spells out "&", strips punctuation, and drops honorifics
    and legal-entity suffixes ("Ltd", "Limited", ...).
    """
    cleaned = _NON_ALNUM.sub(" ", (name or "").casefold().replace("&", " and "))
    tokens = [t for t in cleaned.split() if t not in HONORIFICS]

    # Only trailing suffixes are legal-entity markers ("Co-op Bank" keeps "co")
    while len(tokens) > 1 and tokens[-1] in LEGAL_SUFFIXES:
        tokens.pop()
    return tokens


def normalize_name(name: str) -> str:
    return " ".join(name_tokens(name))


def levenshtein(s1: str, s2: str) -> int:
    """Edit distance between two strings"""
    if len(s1) < len(s2):
        return levenshtein(s2, s1)
    if not s2:
        return len(s1)
    prev_row = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1):
        curr_row = [i + 1]
        for j, c2 in enumerate(s2):
            insertions = prev_row[j + 1] + 1
            deletions = curr_row[j] + 1
            substitutions = prev_row[j] + (c1 != c2)
            curr_row.append(min(insertions, deletions, substitutions))
        prev_row = curr_row
    return prev_row[-1]


def similarity(s1: str, s2: str) -> float:
    """1.0 for identical strings, 0.0 for completely different ones"""
    max_len = max(len(s1), len(s2))
    if max_len == 0:
        return 1.0
    return 1.0 - levenshtein(s1, s2) / max_len
