import pytest

from medstock.app.api.deps import parse_sort
from medstock.app.db.store import Pageable, SortOrder
from medstock.app.errors import ValidationError


def test_parse_sort_fields_and_directions():
    assert parse_sort(["name,desc", "id", " quantity , ASC "]) == (
        SortOrder("name", descending=True),
        SortOrder("id"),
        SortOrder("quantity"),
    )
    assert parse_sort([]) == ()
    assert parse_sort([","]) == ()


@pytest.mark.parametrize("raw", ["name,up", "name,asc,extra"])
def test_parse_sort_rejects_malformed_values(raw):
    with pytest.raises(ValidationError) as exc:
        parse_sort([raw])

    assert "sort" in exc.value.fields


def test_pageable_offset():
    assert Pageable().offset == 0
    assert Pageable(page=3, size=25).offset == 75
