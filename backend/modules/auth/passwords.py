"""
Password hashing and strength validation.

Hashes are bcrypt. The plaintext is first reduced to a fixed-size
SHA-256 digest (base64) so bcrypt's 72-byte input limit never
truncates a long password.
"""

import base64
import hashlib
import logging
import re
import secrets
import string
from functools import cached_property

import bcrypt

from .exceptions import InvalidPasswordInputError
from .models import PasswordStrength, PasswordValidationResult

logger = logging.getLogger(__name__)

DEFAULT_ROUNDS = 12
MIN_LENGTH = 8
MAX_LENGTH = 128

COMMON_PREFIXES = ("password", "123456", "qwerty", "admin", "letmein")
SYMBOLS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"

_SYMBOL_RE = re.compile("[" + re.escape(SYMBOLS) + "]")
_GENERATOR_SYMBOLS = "!@#$%^&*()_+-=[]{}|;:,.<>?"


def _prehash(plaintext: str) -> bytes:
    return base64.b64encode(hashlib.sha256(plaintext.encode("utf-8")).digest())


def is_encodable(plaintext: str) -> bool:
    """False for strings holding lone surrogates, which have no UTF-8 form."""
    try:
        plaintext.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def has_sequential_chars(password: str) -> bool:
    """True for three consecutive code points in a row (abc, 123)."""
    for a, b, c in zip(password, password[1:], password[2:]):
        if ord(b) == ord(a) + 1 and ord(c) == ord(b) + 1:
            return True
    return False


def has_repeated_chars(password: str, limit: int = 3) -> bool:
    """True when any character occurs more than ``limit`` times."""
    return any(password.count(ch) > limit for ch in set(password))


class PasswordManager:
    """bcrypt hashing, verification and strength scoring."""

    def __init__(
        self,
        rounds: int = DEFAULT_ROUNDS,
        min_length: int = MIN_LENGTH,
        max_length: int = MAX_LENGTH,
    ):
        self.rounds = rounds
        self.min_length = min_length
        self.max_length = max_length

    def hash(self, plaintext: str) -> str:
        """
        Hash a password with a fresh salt.

        Raises:
            InvalidPasswordInputError: If the password is empty, longer
                than max_length or not encodable as UTF-8.
        """
        if not plaintext or not isinstance(plaintext, str):
            raise InvalidPasswordInputError("Password must be a non-empty string")
        if len(plaintext) > self.max_length:
            raise InvalidPasswordInputError(
                f"Password must be less than {self.max_length} characters"
            )
        if not is_encodable(plaintext):
            raise InvalidPasswordInputError("Password contains invalid characters")

        hashed = bcrypt.hashpw(_prehash(plaintext), bcrypt.gensalt(rounds=self.rounds))
        logger.debug("Password hashed successfully")
        return hashed.decode("utf-8")

    def verify(self, plaintext: str, password_hash: str) -> bool:
        """Check a password against a stored hash. Never raises."""
        if not plaintext or not password_hash:
            return False
        if not isinstance(plaintext, str) or not isinstance(password_hash, str):
            return False
        try:
            return bcrypt.checkpw(_prehash(plaintext), password_hash.encode("utf-8"))
        except ValueError as e:
            logger.warning(f"Password verification against malformed hash: {e}")
            return False

    @cached_property
    def dummy_hash(self) -> str:
        """A valid hash of a random secret, verified when an account is missing."""
        return self.hash(secrets.token_urlsafe(24))

    def needs_rehash(self, password_hash: str) -> bool:
        """True when the hash was made with fewer rounds than configured."""
        try:
            cost = int(password_hash.split("$")[2])
        except (AttributeError, IndexError, ValueError):
            logger.warning("Could not determine hash rounds, assuming rehash needed")
            return True
        return cost < self.rounds

    def validate_strength(self, plaintext: str) -> PasswordValidationResult:
        """
        Score a password from 0 to 6 and list what is wrong with it.

        One point each for: 8+ characters, lowercase, uppercase, digit,
        symbol, 12+ characters. 5+ is strong, 3+ medium, anything lower weak.

        Too short, too long, or starting with a well-known password is
        always invalid. Weak passwords are invalid and report missing
        character classes; sequential or repeated characters are reported
        for every password but only count against weak ones.
        """
        if not plaintext or not isinstance(plaintext, str):
            return PasswordValidationResult(is_valid=False, errors=["Password is required"])
        if not is_encodable(plaintext):
            return PasswordValidationResult(
                is_valid=False, errors=["Password contains invalid characters"]
            )

        errors: list[str] = []
        is_valid = True

        if len(plaintext) < self.min_length:
            is_valid = False
            errors.append(f"Password must be at least {self.min_length} characters long")
        if len(plaintext) > self.max_length:
            is_valid = False
            errors.append(f"Password must be less than {self.max_length} characters long")

        checks = {
            "length": len(plaintext) >= 8,
            "lowercase": any(c.islower() for c in plaintext),
            "uppercase": any(c.isupper() for c in plaintext),
            "numbers": any(c.isdigit() for c in plaintext),
            "symbols": bool(_SYMBOL_RE.search(plaintext)),
            "long_length": len(plaintext) >= 12,
        }
        score = sum(checks.values())

        if score >= 5:
            strength = PasswordStrength.STRONG
        elif score >= 3:
            strength = PasswordStrength.MEDIUM
        else:
            strength = PasswordStrength.WEAK

        if strength is PasswordStrength.WEAK:
            is_valid = False
            if not checks["lowercase"]:
                errors.append("Password must contain lowercase letters")
            if not checks["uppercase"]:
                errors.append("Password must contain uppercase letters")
            if not checks["numbers"]:
                errors.append("Password must contain numbers")

        if plaintext.lower().startswith(COMMON_PREFIXES):
            is_valid = False
            errors.append("Password contains common patterns and is not secure")

        if has_sequential_chars(plaintext):
            errors.append("Password should not contain sequential characters")
        if has_repeated_chars(plaintext):
            errors.append("Password should not contain too many repeated characters")

        return PasswordValidationResult(
            is_valid=is_valid,
            errors=errors,
            strength=strength,
            score=score,
        )

    def generate_secure(self, length: int = 16) -> str:
        """Random password with at least one character of every class."""
        if length < 4:
            raise ValueError("Password length must be at least 4")

        pools = (string.ascii_lowercase, string.ascii_uppercase, string.digits, _GENERATOR_SYMBOLS)
        alphabet = "".join(pools)
        chars = [secrets.choice(pool) for pool in pools]
        chars += [secrets.choice(alphabet) for _ in range(length - len(pools))]
        secrets.SystemRandom().shuffle(chars)
        return "".join(chars)
