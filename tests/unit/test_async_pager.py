"""
Unit tests for AsyncPager, the coroutine flavour of the pager.
"""

import asyncio

import pytest

from petlodge.pagination import AsyncPager, create_async_pager


def _async_source(source):
    async def fetch(token, page_size):
        await asyncio.sleep(0)
        return source(token, page_size)

    return fetch


@pytest.mark.unit
class TestAsyncPager:
    def test_sequential_pages(self, fake_source):
        source = fake_source(25)
        pager = create_async_pager(_async_source(source), page_size=10)

        async def run():
            return [await pager.fetch_page(k) for k in (1, 2, 3)]

        pages = asyncio.run(run())

        assert [p.count for p in pages] == [10, 10, 5]
        assert [p.has_next for p in pages] == [True, True, False]
        assert len(source.calls) == 3

    def test_cold_jump(self, fake_source):
        source = fake_source(25)
        pager = create_async_pager(_async_source(source), page_size=10)

        page = asyncio.run(pager.fetch_page(3))

        assert page.page == 3
        assert page.count == 5
        assert len(source.calls) == 3

    def test_jump_beyond_end(self, fake_source):
        source = fake_source(15)
        pager = AsyncPager(_async_source(source), page_size=10)

        page = asyncio.run(pager.fetch_page(6))

        assert page.page == 2
        assert page.has_next is False
        assert len(source.calls) == 2

    def test_clamps_page_number(self, fake_source):
        source = fake_source(15)
        pager = create_async_pager(_async_source(source), page_size=10)

        page = asyncio.run(pager.fetch_page(-5))

        assert page.page == 1
        assert source.calls == [(None, 10)]

    def test_error_propagates(self, fake_source):
        async def broken(token, page_size):
            raise PermissionError("not signed in")

        pager = create_async_pager(broken, page_size=10)

        with pytest.raises(PermissionError, match="not signed in"):
            asyncio.run(pager.fetch_page(1))
