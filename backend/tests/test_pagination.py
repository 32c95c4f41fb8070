"""Tests for listing envelope helpers."""

import pytest

from app.common.pagination import paginated_envelope, total_pages


@pytest.mark.parametrize("total,limit,expected", [(0, 12, 0), (12, 12, 1), (13, 12, 2), (5, 0, 0)])
def test_total_pages(total, limit, expected):
    assert total_pages(total, limit) == expected


def test_paginated_envelope():
    envelope = paginated_envelope([{"title_en": "a"}], total=25, page=3, limit=10)

    assert envelope == {
        "success": True,
        "results": [{"title_en": "a"}],
        "total": 25,
        "page": 3,
        "limit": 10,
        "totalPages": 3,
    }
