"""UK sort code and account number validation (modulus checking)"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

SORT_CODE_DIGITS = 6
ACCOUNT_DIGITS = 8

MALFORMED_IDENTIFIER = "malformed_identifier"
CHECKSUM_FAILED = "checksum_failed"
NO_WEIGHT_TABLE = "no_weight_table"

_SEPARATORS = re.compile(r"[-\s]")


class CheckMethod(str, Enum):
    MOD10 = "MOD10"
    MOD11 = "MOD11"
    DBLAL = "DBLAL"  # double alternate: sum the digits of each product


@dataclass(frozen=True)
class WeightTable:
    """One weighting row, applied to sort codes in [start, end]"""

    start: str
    end: str
    method: CheckMethod
    weights: Tuple[int, ...]  # 14 weights: u v w x y z a b c d e f g h
    expected_remainder: int = 0
    exception: Optional[int] = None

    def covers(self, sort_code: str) -> bool:
        return self.start <= sort_code <= self.end


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: Optional[str] = None
    indeterminate: bool = False


def _table(start: str, end: str, method: CheckMethod, weights: str) -> WeightTable:
    return WeightTable(start, end, method, tuple(int(w) for w in weights.split()))


# Excerpt of the clearing weight table; a full valacdos file can be loaded
# with load_weight_tables().
DEFAULT_TABLES: Tuple[WeightTable, ...] = (
    _table("040000", "040099", CheckMethod.MOD10, "0 0 0 0 0 0 7 1 3 7 1 3 7 1"),
    _table("080000", "089999", CheckMethod.MOD10, "0 0 0 0 0 0 7 1 3 7 1 3 7 1"),
    _table("200000", "209999", CheckMethod.MOD11, "0 0 0 0 0 0 8 7 6 5 4 3 2 1"),
    _table("300000", "309999", CheckMethod.DBLAL, "2 1 2 1 2 1 2 1 2 1 2 1 2 1"),
    _table("400000", "409999", CheckMethod.MOD11, "0 0 0 0 0 0 8 7 6 5 4 3 2 1"),
    _table("400000", "409999", CheckMethod.DBLAL, "2 1 2 1 2 1 2 1 2 1 2 1 2 1"),
)


def normalize_sort_code(sort_code: object) -> Optional[str]:
    """Return the 6-digit sort code, or None if malformed"""
    if not isinstance(sort_code, str):
        return None
    cleaned = _SEPARATORS.sub("", sort_code)
    if len(cleaned) != SORT_CODE_DIGITS or not (cleaned.isascii() and cleaned.isdigit()):
        return None
    return cleaned


def normalize_account_number(account_number: object) -> Optional[str]:
    """Return the 8-digit account number (6-7 digit numbers are zero-padded), or None"""
    if not isinstance(account_number, str):
        return None
    cleaned = _SEPARATORS.sub("", account_number)
    if not 6 <= len(cleaned) <= ACCOUNT_DIGITS or not (cleaned.isascii() and cleaned.isdigit()):
        return None
    return cleaned.zfill(ACCOUNT_DIGITS)


def _passes(table: WeightTable, digits: Sequence[int]) -> bool:
    products = [d * w for d, w in zip(digits, table.weights)]
    if table.method == CheckMethod.DBLAL:
        total = sum(sum(int(c) for c in str(p)) for p in products)
        return total % 10 == table.expected_remainder
    base = 11 if table.method == CheckMethod.MOD11 else 10
    return sum(products) % base == table.expected_remainder


def validate(
    sort_code: object,
    account_number: object,
    tables: Sequence[WeightTable] = DEFAULT_TABLES,
) -> ValidationResult:
    """
    Validate a sort code and account number pair.

    Never raises. Malformed identifiers fail before any checksum runs.
    A sort code outside every registered range is indeterminate and passes:
    the absence of a weight table does not prove the account invalid.
    When several rows cover the same range, all of them must pass.
    """
    sc = normalize_sort_code(sort_code)
    an = normalize_account_number(account_number)
    if sc is None or an is None:
        return ValidationResult(valid=False, reason=MALFORMED_IDENTIFIER)

    applicable = [t for t in tables if t.covers(sc)]
    if not applicable:
        return ValidationResult(valid=True, reason=NO_WEIGHT_TABLE, indeterminate=True)

    digits = [int(c) for c in sc + an]
    if all(_passes(t, digits) for t in applicable):
        return ValidationResult(valid=True)
    return ValidationResult(valid=False, reason=CHECKSUM_FAILED)


def load_weight_tables(lines: Iterable[str]) -> List[WeightTable]:
    """
    Parse rows in the VocaLink valacdos layout:

        start end method w1 .. w14 [exception]

    Blank lines and lines starting with '#' are skipped.
    """
    tables = []
    for lineno, line in enumerate(lines, start=1):
        parts = line.split()
        if not parts or parts[0].startswith("#"):
            continue
        if len(parts) not in (17, 18):
            raise ValueError(f"Line {lineno}: expected 17 or 18 fields, got {len(parts)}")
        start, end, method = parts[0], parts[1], CheckMethod(parts[2].upper())
        weights = tuple(int(w) for w in parts[3:17])
        exception = int(parts[17]) if len(parts) == 18 else None
        tables.append(WeightTable(start, end, method, weights, exception=exception))
    return tables
