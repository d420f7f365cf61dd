from __future__ import annotations


class RuleIndexError(Exception):
    """Base error for ruleindex."""


class InvalidKeyError(RuleIndexError, ValueError):
    """Malformed rule key or active rule key."""


class UnknownEnumValueError(RuleIndexError, ValueError):
    """Severity or inheritance string outside the closed set of known values."""


class IndexUnavailableError(RuleIndexError):
    """The index store is closed or cannot be reached."""


class WriteRejectedError(RuleIndexError):
    """The index refused a document write; the document is not searchable."""


class VisibilityTimeoutError(RuleIndexError):
    """Refresh did not confirm visibility before its deadline; writes may still be applied."""


class DatabaseError(RuleIndexError):
    """Relational store read failure."""
