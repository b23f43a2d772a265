"""Tests for Query.paginate and Page."""

import pytest

from docspine import Document, InvalidArgumentError, Key, MapperContext
from docspine.core.settings import DocspineSettings


class PagedEntry(Document):
    position = Key(int)


@pytest.fixture
def entries(ctx):
    PagedEntry.create(ctx, [{"position": i} for i in range(1, 11)])


class TestPaginate:
    def test_first_page(self, ctx, entries):
        page = PagedEntry.query(ctx).sort("position").paginate(page=1, per_page=3)
        assert len(page) == 3
        assert [e.position for e in page] == [1, 2, 3]
        assert page.total_entries == 10
        assert page.total_pages == 4
        assert page.current_page == 1
        assert page.previous_page is None
        assert page.next_page == 2

    def test_last_partial_page(self, ctx, entries):
        page = PagedEntry.query(ctx).sort("position").paginate(page=4, per_page=3)
        assert [e.position for e in page] == [10]
        assert page.next_page is None
        assert page.previous_page == 3
        assert page.offset == 9

    def test_out_of_bounds(self, ctx, entries):
        page = PagedEntry.query(ctx).paginate(page=9, per_page=3)
        assert len(page) == 0
        assert page.out_of_bounds

    def test_string_arguments(self, ctx, entries):
        page = PagedEntry.query(ctx).sort("position").paginate("2", "4")
        assert [e.position for e in page] == [5, 6, 7, 8]

    def test_respects_filters(self, ctx, entries):
        page = PagedEntry.query(ctx).where(position__gt=8).paginate(per_page=5)
        assert page.total_entries == 2
        assert page.total_pages == 1

    def test_default_per_page_from_settings(self, storage):
        ctx = MapperContext(storage=storage, settings=DocspineSettings(_env_file=None, default_per_page=4))
        PagedEntry.create(ctx, [{"position": i} for i in range(6)])
        assert PagedEntry.query(ctx).paginate().per_page == 4

    def test_max_per_page_clamps(self, storage):
        ctx = MapperContext(storage=storage, settings=DocspineSettings(_env_file=None, max_per_page=5))
        PagedEntry.create(ctx, [{"position": i} for i in range(6)])
        page = PagedEntry.query(ctx).paginate(per_page=100)
        assert page.per_page == 5
        assert len(page) == 5

    @pytest.mark.parametrize("page,per_page", [(0, 3), (1, 0), ("x", 3)])
    def test_invalid_arguments(self, ctx, page, per_page):
        with pytest.raises(InvalidArgumentError):
            PagedEntry.query(ctx).paginate(page, per_page)

    def test_page_indexing(self, ctx, entries):
        page = PagedEntry.query(ctx).sort("position").paginate(per_page=3)
        assert page[0].position == 1
        assert [e.position for e in page[1:]] == [2, 3]
