from __future__ import annotations

from enum import Enum

from ruleindex.core.errors import UnknownEnumValueError


class Severity(str, Enum):
    INFO = "INFO"
    MINOR = "MINOR"
    MAJOR = "MAJOR"
    CRITICAL = "CRITICAL"
    BLOCKER = "BLOCKER"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value: str | Severity | None) -> Severity:
        # Only canonical names are accepted so DB drift surfaces immediately.
        if isinstance(value, Severity):
            return value
        try:
            return cls(value)
        except ValueError as exc:
            raise UnknownEnumValueError(f"unknown severity: {value!r}") from exc


_SEVERITY_ORDER = list(Severity)


class Inheritance(str, Enum):
    NONE = "NONE"
    INHERIT = "INHERIT"
    OVERRIDES = "OVERRIDES"

    @classmethod
    def parse(cls, value: str | Inheritance | None) -> Inheritance:
        # The relational layer stores NULL for activations defined locally.
        if value is None:
            return cls.NONE
        if isinstance(value, Inheritance):
            return value
        try:
            return cls(value)
        except ValueError as exc:
            raise UnknownEnumValueError(f"unknown inheritance: {value!r}") from exc
