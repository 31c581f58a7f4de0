from __future__ import annotations

import re
import secrets

from sqlalchemy.orm import DeclarativeBase


_OBJECT_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")


class Base(DeclarativeBase):
    pass


def new_object_id() -> str:
    """Opaque 24-hex-character identifier assigned to every stored record."""
    return secrets.token_hex(12)


def is_object_id(value: object) -> bool:
    return isinstance(value, str) and bool(_OBJECT_ID_RE.match(value))
