"""
Naming convention utilities: snake_case ↔ camelCase ↔ PascalCase ↔ kebab-case.

Used to reconcile record field names with SQL placeholder and column names.
All functions are pure; identifiers that are not in the expected style pass
through unchanged.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

_SNAKE_RE = re.compile(r"^[a-z0-9]+(?:_[a-z0-9]+)*$")
_KEBAB_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_CAMEL_RE = re.compile(r"^[a-z][a-zA-Z0-9]*$")
_PASCAL_RE = re.compile(r"^[A-Z][a-zA-Z0-9]*$")


class Convention(str, Enum):
    """Identifier styles."""

    SNAKE = "snake_case"
    CAMEL = "camelCase"
    PASCAL = "PascalCase"
    KEBAB = "kebab-case"


_STYLE_PATTERNS: dict[Convention, re.Pattern[str]] = {
    Convention.SNAKE: _SNAKE_RE,
    Convention.KEBAB: _KEBAB_RE,
    Convention.CAMEL: _CAMEL_RE,
    Convention.PASCAL: _PASCAL_RE,
}


def _split_case(name: str) -> list[str]:
    # Insert a break between an acronym and a following word, then between
    # lowercase/digit and uppercase: HTTPRequest -> HTTP_Request, userId -> user_Id
    s = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    s = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s)
    return [p.lower() for p in s.split("_") if p]


def split_words(identifier: str) -> list[str]:
    """Split an identifier of any supported style into lowercase words.

    Examples:
        user_id -> [user, id]
        userId -> [user, id]
        UserProfile -> [user, profile]
        dark-blue -> [dark, blue]
    """
    words: list[str] = []
    for part in re.split(r"[_\-\s]+", identifier):
        if part:
            words.extend(_split_case(part))
    return words


def _join(words: list[str], target: Convention) -> str:
    if target == Convention.SNAKE:
        return "_".join(words)
    if target == Convention.KEBAB:
        return "-".join(words)
    if target == Convention.PASCAL:
        return "".join(w.capitalize() for w in words)
    if target == Convention.CAMEL:
        return words[0] + "".join(w.capitalize() for w in words[1:])
    raise ValueError(f"Unsupported convention: {target}")


def matches(identifier: str, convention: Convention) -> bool:
    """True if *identifier* is written in *convention*."""
    return bool(_STYLE_PATTERNS[convention].match(identifier))


def convert(identifier: str, source: Convention, target: Convention) -> str:
    """Convert *identifier* from *source* style to *target* style.

    Identifiers that are not written in *source* style are returned unchanged.

    Converting back does not always give the original. Words are lowercased
    and re-capitalized, and a word that starts with a digit has no case to
    mark its boundary, so the round trip is lossy for:

    * digit-leading words: ``x_1`` -> ``x1`` -> ``x1``
    * acronyms: ``userID`` -> ``user_id`` -> ``userId``

    Identifiers whose words are lowercase and start with a letter
    (``user_id``, ``a1_b2``) do round-trip.
    """
    if source == target or not matches(identifier, source):
        return identifier
    if source in (Convention.SNAKE, Convention.KEBAB):
        words = identifier.split("_" if source == Convention.SNAKE else "-")
    else:
        words = _split_case(identifier)
    return _join(words, target)


def to_convention(identifier: str, target: Convention) -> str:
    """Convert an identifier of any style to *target* style."""
    words = split_words(identifier)
    if not words or not all(w.isalnum() for w in words):
        return identifier
    return _join(words, target)


@dataclass(frozen=True)
class NameMapping:
    """Pairs the naming style of records/parameters with the style used in SQL.

    ``NameMapping(record=Convention.CAMEL, sql=Convention.SNAKE)`` turns a
    ``userId`` parameter into the ``user_id`` placeholder and a ``user_id``
    column into the ``userId`` field.
    """

    record: Convention
    sql: Convention

    def to_sql(self, name: str) -> str:
        return convert(name, self.record, self.sql)

    def to_record(self, name: str) -> str:
        return convert(name, self.sql, self.record)


CAMEL_TO_SNAKE = NameMapping(record=Convention.CAMEL, sql=Convention.SNAKE)
PASCAL_TO_SNAKE = NameMapping(record=Convention.PASCAL, sql=Convention.SNAKE)


E = TypeVar("E", bound="CaseInsensitiveEnum")


class CaseInsensitiveEnum(Enum):
    """Enum whose members parse from labels in any naming style.

    ``Color.parse("GREEN")``, ``Color.parse("Green")`` and ``Color.parse("green")``
    all return ``Color.GREEN``; ``str(Color.DARK_BLUE)`` is ``"dark_blue"``.
    """

    @classmethod
    def parse(cls: type[E], text: str, default: E | None = None) -> E:
        for member in cls:
            if member.value == text:
                return member
        key = "_".join(split_words(text))
        for member in cls:
            if member.name.lower() == key:
                return member
        if default is not None:
            return default
        raise ValueError(f"{text!r} is not a valid {cls.__name__}")

    def __str__(self) -> str:
        return self.name.lower()
