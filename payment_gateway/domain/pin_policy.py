"""Transfer PIN format, strength and hashing rules"""

import re

from passlib.context import CryptContext

# pbkdf2_sha256 hashes embed their own random salt
pin_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

_PIN_PATTERN = re.compile(r"[0-9]{4}")
_DIGITS = "0123456789"


def is_well_formed(pin: object) -> bool:
    return isinstance(pin, str) and bool(_PIN_PATTERN.fullmatch(pin))


def is_weak_pin(pin: str) -> bool:
    """
    Trivially guessable PINs:
    - four identical digits (0000, 7777)
    - ascending or descending runs, including the 7890 / 0987 wrap
    - a repeated pair (1212, 4545)
    """
    if len(set(pin)) == 1:
        return True
    ascending = _DIGITS + "0"
    if pin in ascending or pin in ascending[::-1]:
        return True
    return pin[:2] == pin[2:]


def hash_pin(pin: str) -> str:
    return pin_context.hash(pin)


def verify_pin_hash(pin: str, pin_hash: str) -> bool:
    return pin_context.verify(pin, pin_hash)
