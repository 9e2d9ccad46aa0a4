"""Join code and token generation."""

import secrets

from config import (
    CODE_ALPHABET,
    SCHOOL_CODE_LENGTH,
    SCHOOL_CODE_PREFIX,
    STUDENT_INVITE_CODE_LENGTH,
    TEMPORARY_PASSWORD_LENGTH,
)


def random_code(length: int, alphabet: str = CODE_ALPHABET) -> str:
    """Return ``length`` characters drawn uniformly from ``alphabet``."""
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_school_code() -> str:
    """Return a candidate school code such as ``SCH7KQ2MX``."""
    return f"{SCHOOL_CODE_PREFIX}{random_code(SCHOOL_CODE_LENGTH)}"


def generate_student_invite_code() -> str:
    return random_code(STUDENT_INVITE_CODE_LENGTH)


def generate_temporary_password() -> str:
    """Return a one-time password for a provisioned staff account."""
    return random_code(TEMPORARY_PASSWORD_LENGTH)


def generate_invitation_token() -> str:
    return secrets.token_hex(16)


def is_valid_school_code(code: str) -> bool:
    body = code[len(SCHOOL_CODE_PREFIX):]
    return (
        code.startswith(SCHOOL_CODE_PREFIX)
        and len(body) == SCHOOL_CODE_LENGTH
        and all(ch in CODE_ALPHABET for ch in body)
    )
