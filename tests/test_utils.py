"""Tests for the shared helpers."""

import pytest

from services.shared.utils import Pagination


class TestPagination:
    def test_number_of_pages(self):
        pagination = Pagination(61, 30)

        assert pagination.number_pages == 3
        assert pagination.current_page == 1
        assert pagination.offset == 0

    def test_offset_of_a_page(self):
        assert Pagination(61, 30, current_page=3).offset == 60

    def test_no_elements_still_has_one_page(self):
        pagination = Pagination(0, 30)

        assert pagination.number_pages == 1
        assert pagination.offset == 0

    @pytest.mark.parametrize("page, expected", [(0, 1), (-4, 1), (5, 2), (2, 2)])
    def test_current_page_is_bounded(self, page, expected):
        assert Pagination(31, 30, current_page=page).current_page == expected

    def test_to_dict(self):
        assert Pagination(31, 30, current_page=2).to_dict() == {
            "current_page": 2,
            "number_pages": 2,
            "number_per_page": 30,
            "number_elements": 31,
        }
