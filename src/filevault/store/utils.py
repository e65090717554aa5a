"""Node name validation and small timestamp helpers."""

from __future__ import annotations

from datetime import UTC, datetime

from .exceptions import ValidationError

MAX_NAME_LENGTH = 255

# Reserved filenames (Windows compatibility)
RESERVED_NAMES = {
    "CON", "PRN", "AUX", "NUL",
    "COM1", "COM2", "COM3", "COM4", "COM5", "COM6", "COM7", "COM8", "COM9",
    "LPT1", "LPT2", "LPT3", "LPT4", "LPT5", "LPT6", "LPT7", "LPT8", "LPT9",
}


def utc_now() -> datetime:
    return datetime.now(UTC)


def validate_node_name(name: str | None) -> str:
    """Validate a node name and return it stripped.

    Raises ``ValidationError`` for empty names, path separators, control
    characters, ``.``/``..``, reserved device names, and names longer
    than 255 characters.

    Examples:
        validate_node_name("  notes.md ") -> "notes.md"
        validate_node_name("") -> ValidationError
        validate_node_name("a/b") -> ValidationError
    """
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Name cannot be empty", name=name)

    if len(cleaned) > MAX_NAME_LENGTH:
        raise ValidationError(
            f"Name too long (max {MAX_NAME_LENGTH} characters)", name=cleaned
        )

    if "/" in cleaned or "\\" in cleaned:
        raise ValidationError("Name cannot contain path separators", name=cleaned)

    for ch in cleaned:
        code = ord(ch)
        if code == 0 or 0x01 <= code <= 0x1F:
            raise ValidationError(
                f"Name contains control character: 0x{code:02x}", name=cleaned
            )

    if cleaned in (".", ".."):
        raise ValidationError(f"Reserved name: {cleaned}", name=cleaned)

    base_name = cleaned.upper().split(".")[0]
    if base_name in RESERVED_NAMES:
        raise ValidationError(f"Reserved filename: {cleaned}", name=cleaned)

    return cleaned
