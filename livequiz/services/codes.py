import secrets
from typing import Awaitable, Callable

# No 0/O or 1/I lookalikes
JOIN_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
JOIN_CODE_LENGTH = 6
MAX_ATTEMPTS = 50


def random_code(length: int = JOIN_CODE_LENGTH) -> str:
    return "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(length))


async def generate_unique_code(
    is_taken: Callable[[str], Awaitable[bool]],
    length: int = JOIN_CODE_LENGTH,
) -> str:
    """Draw codes until ``is_taken`` reports a free one."""
    for _ in range(MAX_ATTEMPTS):
        code = random_code(length)
        if not await is_taken(code):
            return code
    raise RuntimeError(f"Could not find a free join code after {MAX_ATTEMPTS} attempts")


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()
