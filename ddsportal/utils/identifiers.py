"""
Compact 'XXXX-XXXX' identifiers shared by supplier links and connection tokens.

36 symbols over 8 positions gives ~2.8e12 values, so at realistic occupancy a
collision is rare and `generate_unique` almost always returns on the first
draw. The unique constraint in storage remains the authoritative guard; the
oracle here only saves a failed insert.
"""
import re
import secrets
from typing import Callable

from loguru import logger

from ddsportal.core.exceptions import GenerationExhaustedError


ID_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
ID_PATTERN = re.compile(r"^[A-Z0-9]{4}-[A-Z0-9]{4}$")
MAX_ATTEMPTS = 100


def _block() -> str:
    return "".join(secrets.choice(ID_CHARS) for _ in range(4))


def generate() -> str:
    """Draw a fresh identifier. Example: 'K7QD-2M9X'"""
    return f"{_block()}-{_block()}"


def is_valid(value: str) -> bool:
    return isinstance(value, str) and ID_PATTERN.match(value) is not None


def generate_unique(exists: Callable[[str], bool], max_attempts: int = MAX_ATTEMPTS) -> str:
    """
    Draws identifiers until `exists` reports a free one.
    Raises GenerationExhaustedError after `max_attempts` collisions; callers
    must not retry, repeated collisions point at a broken generator or store.
    """
    for _ in range(max_attempts):
        candidate = generate()
        if not exists(candidate):
            return candidate

    logger.error(f"Identifier generation exhausted after {max_attempts} attempts")
    raise GenerationExhaustedError(max_attempts)
