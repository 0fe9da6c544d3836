"""Unit tests for engines.sql.mapper."""

from dataclasses import dataclass, field
from datetime import datetime

import pytest
from pydantic import BaseModel, Field
from typing_extensions import NotRequired, TypedDict

from shunlib.core.errors import (
    AmbiguousColumnError,
    MappingError,
    MissingColumnError,
    TypeCoercionError,
)
from shunlib.core.naming import CAMEL_TO_SNAKE
from shunlib.engines.sql import ResultRow, RowMapper, SQLTemplateEngine, execute, map_row


class User(BaseModel):
    id: int
    name: str
    email: str | None = None


class Event(BaseModel):
    id: int
    createdAt: datetime


class EventByDate(BaseModel):
    id: int
    createdDate: datetime


class Aliased(BaseModel):
    user_name: str = Field(alias="name")


@dataclass
class UserRow:
    id: int
    name: str
    tags: list[str] = field(default_factory=list)


class UserDict(TypedDict):
    id: int
    name: str
    email: NotRequired[str | None]


class TestMapRow:
    def test_pydantic_model(self):
        row = ResultRow(("id", "name", "email"), (1, "alice", None))
        assert map_row(row, User) == User(id=1, name="alice")

    def test_dataclass(self):
        assert map_row(ResultRow(("id", "name"), (1, "a")), UserRow) == UserRow(1, "a")

    def test_typeddict(self):
        assert map_row(ResultRow(("name", "id"), ("a", "1")), UserDict) == {"id": 1, "name": "a"}

    def test_dict(self):
        assert map_row(ResultRow(("a", "b"), (1, 2)), dict) == {"a": 1, "b": 2}

    def test_extra_columns_ignored(self):
        row = ResultRow(("id", "name", "other"), (1, "a", "x"))
        assert map_row(row, UserRow) == UserRow(1, "a")

    def test_alias(self):
        assert map_row(ResultRow(("name",), ("bob",)), Aliased).user_name == "bob"

    def test_value_coercion(self):
        row = ResultRow(("id", "createdAt"), ("7", "2024-01-02 03:04:05"))
        assert map_row(row, Event) == Event(id=7, createdAt=datetime(2024, 1, 2, 3, 4, 5))


class TestNaming:
    def test_snake_column_to_camel_field(self):
        row = ResultRow(("id", "created_at"), (1, "2024-01-02 03:04:05"))
        ev = map_row(row, Event, CAMEL_TO_SNAKE)
        assert ev.createdAt == datetime(2024, 1, 2, 3, 4, 5)

    def test_unmatched_field_is_missing(self):
        row = ResultRow(("id", "created_at"), (1, "2024-01-02 03:04:05"))
        with pytest.raises(MissingColumnError) as exc:
            map_row(row, EventByDate, CAMEL_TO_SNAKE)
        assert exc.value.field == "createdDate"

    def test_no_conversion_without_mapping(self):
        row = ResultRow(("id", "created_at"), (1, "2024-01-02"))
        with pytest.raises(MissingColumnError):
            map_row(row, Event)

    def test_case_sensitive(self):
        with pytest.raises(MissingColumnError):
            map_row(ResultRow(("ID", "NAME"), (1, "a")), UserRow)


class TestErrors:
    def test_ambiguous(self):
        with pytest.raises(AmbiguousColumnError) as exc:
            RowMapper(UserRow, ("id", "name", "name"))
        assert exc.value.field == "name"

    def test_ambiguous_after_conversion(self):
        with pytest.raises(AmbiguousColumnError):
            RowMapper(Event, ("id", "created_at", "created_at"), CAMEL_TO_SNAKE)

    def test_optional_field_may_be_missing(self):
        assert RowMapper(User, ("id", "name")).map((1, "a")) == User(id=1, name="a")

    def test_type_coercion(self):
        mapper = RowMapper(User, ("id", "name"))
        with pytest.raises(TypeCoercionError) as exc:
            mapper.map(("not-a-number", "a"))
        assert exc.value.field == "id"
        assert exc.value.column == "id"
        assert exc.value.value == "not-a-number"
        assert isinstance(exc.value.__cause__, Exception)

    def test_unsupported_record_type(self):
        with pytest.raises(MappingError):
            RowMapper(int, ("a",))


class TestRowCursorMap:
    def test_map_cursor(self, users):
        cur = execute(users, SQLTemplateEngine().render("SELECT id, name, email FROM users ORDER BY id"))
        out = list(cur.map(User))
        assert [u.name for u in out] == ["alice", "bob", "carol"]
        assert out[2].email is None

    def test_plan_checked_before_reading(self, users):
        cur = execute(users, SQLTemplateEngine().render("SELECT id FROM users"))
        with pytest.raises(MissingColumnError):
            cur.map(User)
        assert cur.fetchone() is not None

    def test_map_defaults_to_dict(self, users):
        cur = execute(users, SQLTemplateEngine().render("SELECT id FROM users WHERE id = 42"))
        assert list(cur.map()) == [{"id": 42}]
