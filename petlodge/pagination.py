"""
Pagination support for PetLodge.

Upstream listings (DynamoDB scans/queries, the GraphQL list calls that sit on
top of them) hand out opaque continuation tokens: each page comes back with the
token needed to fetch the page after it. The UI wants numbered pages instead.

This module bridges the two:

- PageToken wraps a continuation token so it can only be stored and handed back.
- CursorPage is what a paginated fetch returns (items + next token).
- TokenMap remembers, per pager, which token fetches which page number.
- Pager / AsyncPager expose fetch_page(n) over a fetch callable, walking
  forward from page 1 when asked for a page whose token is not known yet.

Usage:
    pager = create_pager(lambda token, size: source.list(token, size), page_size=10)
    first = pager.fetch_page(1)
    third = pager.fetch_page(3)
"""

import operator
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

from ._logging import logger, redact

T = TypeVar("T")


class PageToken:
    """
    Opaque continuation token returned by a paginated source.

    Tokens are compared and hashed, never inspected: the only thing a caller
    may do with one is hand it back to the source that issued it.
    """

    __slots__ = ("_value",)

    def __init__(self, value: str) -> None:
        if not isinstance(value, str) or not value:
            raise ValueError("PageToken requires a non-empty string")
        self._value = value

    @classmethod
    def wrap(cls, value: str | None) -> "PageToken | None":
        """Wraps a raw upstream token; None or empty means end of stream."""
        if not value:
            return None
        return cls(value)

    @property
    def value(self) -> str:
        """The raw token, for the source that issued it."""
        return self._value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PageToken):
            return NotImplemented
        return self._value == other._value

    def __hash__(self) -> int:
        return hash(("PageToken", self._value))

    def __repr__(self) -> str:
        return f"PageToken({redact(self._value)})"


class _EndOfStream:
    """Marker stored in a TokenMap for the page after the last one."""

    _instance: "_EndOfStream | None" = None

    def __new__(cls) -> "_EndOfStream":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "END"

    def __bool__(self) -> bool:
        return False


END = _EndOfStream()

TokenEntry = Union[PageToken, None, _EndOfStream]


@dataclass
class CursorPage(Generic[T]):
    """
    One batch of records from a cursor-paginated source.

    Attributes:
        items: Records in upstream order
        next_token: Token for the following batch (None at end of stream)
    """

    items: list[T]
    next_token: PageToken | None = None

    @property
    def has_more(self) -> bool:
        """Returns True if the source reported a following batch."""
        return self.next_token is not None


@dataclass
class PageResult(Generic[T]):
    """
    Represents a single numbered page of results.

    Attributes:
        items: Records for this page
        page: The page number actually served (may be lower than requested
              when the stream ended first)
        page_size: Page size the pager was created with
        has_next: True if a continuation token came back with this page
    """

    items: list[T]
    page: int
    page_size: int
    has_next: bool

    @property
    def count(self) -> int:
        """Number of items in this page."""
        return len(self.items)


class TokenMap:
    """
    Page number -> token needed to fetch that page.

    Page 1 always maps to None (start of stream). Entry N+1 holds the token
    returned while fetching page N, or END when page N was the last one.
    Known entries are always contiguous from page 1.
    """

    def __init__(self) -> None:
        self._entries: dict[int, TokenEntry] = {1: None}

    def __contains__(self, page: object) -> bool:
        return page in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._entries))

    def __repr__(self) -> str:
        return f"TokenMap({self.as_dict()!r})"

    def get(self, page: int) -> TokenEntry:
        """Returns the raw entry for page (KeyError if unknown)."""
        return self._entries[page]

    def is_fetchable(self, page: int) -> bool:
        """True if the token for page is known and the page exists."""
        return page in self._entries and self._entries[page] is not END

    def token_for(self, page: int) -> PageToken | None:
        """
        Returns the token to present when fetching page.

        Raises:
            KeyError: If the page is unknown or lies past the end of stream
        """
        entry = self._entries.get(page, END)
        if entry is END:
            raise KeyError(page)
        return entry  # type: ignore[return-value]

    def record(self, page: int, next_token: PageToken | None) -> None:
        """
        Stores the continuation returned while fetching page.

        If the entry for the following page changes (the source moved on since
        it was last walked), every entry after it is dropped as stale.
        """
        following = page + 1
        entry: TokenEntry = next_token if next_token is not None else END
        if following in self._entries and self._entries[following] != entry:
            for stale in [p for p in self._entries if p > following]:
                del self._entries[stale]
        self._entries[following] = entry

    def reset(self) -> None:
        """Back to the initial state: only page 1, with no token."""
        self._entries.clear()
        self._entries[1] = None

    @property
    def furthest_page(self) -> int:
        """Highest page number whose token is known."""
        return max(p for p in self._entries if self._entries[p] is not END)

    @property
    def last_page(self) -> int | None:
        """The final page of the stream, if the end has been seen."""
        for page, entry in self._entries.items():
            if entry is END:
                return page - 1
        return None

    def as_dict(self) -> dict[int, Any]:
        """Snapshot copy of the entries, for inspection and debugging."""
        return dict(sorted(self._entries.items()))


FetchFn = Callable[[PageToken | None, int], CursorPage[T]]
AsyncFetchFn = Callable[[PageToken | None, int], Awaitable[CursorPage[T]]]


def normalize_page(page: Any) -> int:
    """Coerces a requested page number to an integer >= 1."""
    if isinstance(page, bool):
        return 1
    try:
        number = operator.index(page)
    except TypeError:
        return 1
    return max(number, 1)


class _BasePager(Generic[T]):
    """Token bookkeeping shared by the sync and async pagers."""

    def __init__(self, page_size: int = 10, token_map: TokenMap | None = None) -> None:
        if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size < 1:
            raise ValueError(f"page_size must be a positive integer, got {page_size!r}")
        self.page_size = page_size
        self.token_map = token_map if token_map is not None else TokenMap()

    def reset(self) -> None:
        """Forgets every recorded token."""
        self.token_map.reset()

    def _plan(self, page: int) -> tuple[int, bool]:
        """
        Decides how to reach page.

        Returns:
            (page to serve, whether a forward walk from page 1 is needed)
        """
        last = self.token_map.last_page
        if last is not None and page > last:
            return last, False
        if self.token_map.is_fetchable(page):
            return page, False
        return page, True

    def _start_walk(self, page: int) -> None:
        logger.info(
            "Walking forward to page",
            extra={
                "operation": "fetch_page",
                "page": page,
                "known_pages": self.token_map.furthest_page,
                "page_size": self.page_size,
            },
        )
        self.token_map.reset()

    def _before_fetch(self, page: int) -> PageToken | None:
        token = self.token_map.token_for(page)
        logger.debug(
            "Fetching page",
            extra={
                "operation": "fetch_page",
                "page": page,
                "page_size": self.page_size,
                "has_cursor": token is not None,
            },
        )
        return token

    def _after_fetch(self, page: int, batch: CursorPage[T]) -> PageResult[T]:
        self.token_map.record(page, batch.next_token)
        return PageResult(
            items=list(batch.items),
            page=page,
            page_size=self.page_size,
            has_next=batch.next_token is not None,
        )


class Pager(_BasePager[T]):
    """
    Page-number access over a token-paginated fetch callable.

    fetch(token, page_size) must return a CursorPage. Errors raised by it
    propagate unchanged; nothing is retried. A pager is not safe for
    concurrent fetch_page calls.
    """

    def __init__(
        self, fetch: FetchFn[T], page_size: int = 10, token_map: TokenMap | None = None
    ) -> None:
        super().__init__(page_size=page_size, token_map=token_map)
        self._fetch_fn = fetch

    def fetch_page(self, page: int = 1) -> PageResult[T]:
        """
        Returns the numbered page.

        Known pages cost one upstream call. An unknown page is reached by
        walking from page 1, one call per page, stopping early (and serving
        the last page reached) if the stream ends first.
        """
        requested = normalize_page(page)
        target, walk = self._plan(requested)
        if not walk:
            return self._fetch(target)

        self._start_walk(requested)
        current = 1
        while True:
            result = self._fetch(current)
            if current == requested or not result.has_next:
                return result
            current += 1

    def _fetch(self, page: int) -> PageResult[T]:
        token = self._before_fetch(page)
        batch = self._fetch_fn(token, self.page_size)
        return self._after_fetch(page, batch)


class AsyncPager(_BasePager[T]):
    """Pager for coroutine fetch callables; same contract as Pager."""

    def __init__(
        self, fetch: AsyncFetchFn[T], page_size: int = 10, token_map: TokenMap | None = None
    ) -> None:
        super().__init__(page_size=page_size, token_map=token_map)
        self._fetch_fn = fetch

    async def fetch_page(self, page: int = 1) -> PageResult[T]:
        requested = normalize_page(page)
        target, walk = self._plan(requested)
        if not walk:
            return await self._fetch(target)

        self._start_walk(requested)
        current = 1
        while True:
            result = await self._fetch(current)
            if current == requested or not result.has_next:
                return result
            current += 1

    async def _fetch(self, page: int) -> PageResult[T]:
        token = self._before_fetch(page)
        batch = await self._fetch_fn(token, self.page_size)
        return self._after_fetch(page, batch)


def create_pager(fetch: FetchFn[T], page_size: int = 10) -> Pager[T]:
    """Creates a Pager with a fresh token map seeded with {1: no token}."""
    return Pager(fetch, page_size=page_size)


def create_async_pager(fetch: AsyncFetchFn[T], page_size: int = 10) -> AsyncPager[T]:
    """Async counterpart of create_pager."""
    return AsyncPager(fetch, page_size=page_size)
