"""Confirmation of Payee - compare a claimed payee name with the account holder"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from payment_gateway.domain.models import CopVerdict
from payment_gateway.domain.modulus import normalize_account_number, normalize_sort_code
from payment_gateway.utils.strings import name_tokens, similarity


class LookupStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class HolderLookup:
    """Account holder name as reported by the receiving bank (fetched beforehand)"""

    status: LookupStatus
    name: Optional[str] = None

    @classmethod
    def found(cls, name: str) -> "HolderLookup":
        return cls(LookupStatus.FOUND, name)

    @classmethod
    def not_found(cls) -> "HolderLookup":
        return cls(LookupStatus.NOT_FOUND)

    @classmethod
    def unavailable(cls) -> "HolderLookup":
        return cls(LookupStatus.UNAVAILABLE)


@dataclass(frozen=True)
class CopResult:
    verdict: CopVerdict
    matched_name: Optional[str] = None
    similarity: Optional[float] = None


@dataclass(frozen=True)
class CopMessage:
    title: str
    description: str
    severity: str  # success | warning | error | info
    can_proceed: bool


def compare_names(
    claimed_name: str,
    holder_name: str,
    match_threshold: float = 0.95,
    close_match_threshold: float = 0.75,
) -> CopResult:
    """
    Compare two names after normalisation.

    Case, whitespace, punctuation, honorifics and legal-entity suffixes are
    ignored. Names made of the same words in a different order are a close
    match ("Smith John" vs "John Smith").
    """
    claimed_tokens = name_tokens(claimed_name)
    holder_tokens = name_tokens(holder_name)
    if not claimed_tokens or not holder_tokens:
        return CopResult(CopVerdict.NO_MATCH, similarity=0.0)

    claimed = " ".join(claimed_tokens)
    holder = " ".join(holder_tokens)
    score = round(similarity(claimed, holder), 4)

    if claimed == holder or score >= match_threshold:
        verdict = CopVerdict.MATCH
    elif score >= close_match_threshold or sorted(claimed_tokens) == sorted(holder_tokens):
        verdict = CopVerdict.CLOSE_MATCH
    else:
        verdict = CopVerdict.NO_MATCH

    # Holder name is never disclosed on a no-match
    matched_name = holder_name if verdict != CopVerdict.NO_MATCH else None
    return CopResult(verdict, matched_name=matched_name, similarity=score)


def match(
    sort_code: str,
    account_number: str,
    claimed_name: str,
    holder: HolderLookup,
    match_threshold: float = 0.95,
    close_match_threshold: float = 0.75,
) -> CopResult:
    """Produce the CoP verdict for a payee given the already-fetched holder lookup"""
    if normalize_sort_code(sort_code) is None or normalize_account_number(account_number) is None:
        return CopResult(CopVerdict.ACCOUNT_NOT_FOUND)
    if holder.status == LookupStatus.UNAVAILABLE:
        return CopResult(CopVerdict.UNAVAILABLE)
    if holder.status == LookupStatus.NOT_FOUND or not holder.name:
        return CopResult(CopVerdict.ACCOUNT_NOT_FOUND)
    return compare_names(claimed_name, holder.name, match_threshold, close_match_threshold)


def cop_message(verdict: CopVerdict, matched_name: Optional[str] = None) -> CopMessage:
    """Customer-facing messaging for each verdict"""
    if verdict == CopVerdict.MATCH:
        return CopMessage(
            "Name matches",
            "The name you entered matches the account holder.",
            "success",
            True,
        )
    if verdict == CopVerdict.CLOSE_MATCH:
        description = (
            f'The receiving bank shows the account holder as "{matched_name}". '
            "Please check this is correct before proceeding."
            if matched_name
            else "The name is a close but not exact match. Please verify before proceeding."
        )
        return CopMessage("Partial name match", description, "warning", True)
    if verdict == CopVerdict.NO_MATCH:
        return CopMessage(
            "Name does not match",
            "The name you entered does not match the account holder at the receiving bank.",
            "error",
            False,
        )
    if verdict == CopVerdict.ACCOUNT_NOT_FOUND:
        return CopMessage(
            "Account not found",
            "The receiving bank could not find an account with these details.",
            "error",
            False,
        )
    return CopMessage(
        "Check unavailable",
        "We were unable to verify the account holder name. "
        "Please double-check the details before proceeding.",
        "info",
        True,
    )
