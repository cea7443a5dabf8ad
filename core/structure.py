# core/structure.py
"""
Structure and transpose tags for factorizations, with tolerant parsing of
user supplied literals ('n', 'T', 'hermitian', ...).
"""
from enum import Enum
from typing import Union

from core.exceptions import InvalidArgumentError


class Structure(str, Enum):
    GENERAL = "n"
    SYMMETRIC = "s"
    HERMITIAN = "h"
    POSITIVE_DEFINITE = "p"

    @property
    def self_adjoint(self) -> bool:
        return self in (Structure.HERMITIAN, Structure.POSITIVE_DEFINITE)

    @classmethod
    def parse(cls, value: Union["Structure", str]) -> "Structure":
        return _parse(cls, value, "structure")


class Transpose(str, Enum):
    NONE = "n"
    TRANSPOSE = "t"
    CONJUGATE = "c"

    @classmethod
    def parse(cls, value: Union["Transpose", str]) -> "Transpose":
        return _parse(cls, value, "transpose mode")


def _parse(enum_cls, value, what: str):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        key = value.strip().lower()
        for member in enum_cls:
            if key == member.value or key == member.name.lower():
                return member
    allowed = ", ".join(repr(m.value) for m in enum_cls)
    raise InvalidArgumentError(f"Invalid {what} {value!r}; expected one of {allowed}")
