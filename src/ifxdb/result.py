"""
Live query results and row fetching.

A `QueryResult` wraps a native result handle between execution of a read
statement and its release. Rows are addressed 1-based at the native layer;
the public API is 0-based.
"""
import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from ifxdb.exceptions import ErrorKind, make_error
from ifxdb.native import NEXT
from ifxdb.types import FetchMode, Portability

from libb import attrdict

if TYPE_CHECKING:
    from ifxdb.connection import ConnectionWrapper

logger = logging.getLogger(__name__)

__all__ = ['QueryResult', 'normalize_row', 'native_position']


def native_position(rownum: int | None) -> int | str | None:
    """Translate a 0-based row number to native addressing.

    Returns None for negative row numbers, which never reach the native
    layer, and ``NEXT`` when no row number is given.
    """
    if rownum is None:
        return NEXT
    if rownum < 0:
        return None
    return rownum + 1


def normalize_row(row: dict[str, Any], fetchmode: FetchMode,
                  portability: Portability) -> list[Any] | dict[str, Any]:
    """Shape a native associative row.

    Applied in order: positional conversion or key lower-casing, right
    trimming of strings, NULL to empty string.
    """
    if fetchmode is FetchMode.ORDERED:
        out: list[Any] | dict[str, Any] = list(row.values())
    elif portability & Portability.LOWERCASE:
        out = {key.lower(): val for key, val in row.items()}
    else:
        out = dict(row)

    keys = range(len(out)) if isinstance(out, list) else list(out)
    if portability & Portability.RTRIM:
        for key in keys:
            if isinstance(out[key], str):
                out[key] = out[key].rstrip()
    if portability & Portability.NULL_TO_EMPTY:
        for key in keys:
            if out[key] is None:
                out[key] = ''
    return out


class QueryResult:
    """Result set of a read statement.

    Owned by the caller that received it and released with `free()`. The
    ``scrollable`` flag is fixed at creation.

    Examples
        result = cn.query('select id, name from customer')
        try:
            while (row := result.fetch_row()) is not None:
                ...
        finally:
            result.free()
    """

    def __init__(self, connection: 'ConnectionWrapper', handle: Any, scrollable: bool = True,
                 limit_from: int | None = None, limit_count: int | None = None) -> None:
        self.connection = connection
        self.handle = handle
        self._scrollable = scrollable
        self.limit_from = limit_from
        self.limit_count = limit_count
        self.row_counter: int | None = None
        self.freed = False

    def __repr__(self) -> str:
        state = 'freed' if self.freed else 'live'
        return f'QueryResult({self.handle!r}, scrollable={self._scrollable}, {state})'

    def __enter__(self) -> 'QueryResult':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.free()

    def __iter__(self) -> Iterator[Any]:
        while (row := self.fetch_row()) is not None:
            yield row

    @property
    def scrollable(self) -> bool:
        return self._scrollable

    @property
    def driver(self) -> Any:
        return self.connection.driver

    def _check_live(self) -> None:
        self.connection._check_connected()
        if self.freed:
            raise make_error(ErrorKind.NEED_MORE_DATA, message='result has been freed')

    def fetch_row(self, fetchmode: FetchMode | None = None,
                  rownum: int | None = None) -> list[Any] | dict[str, Any] | None:
        """Fetch one row, or None at the end of the results.

        ``rownum`` is 0-based; None means the next row. Inside a limit
        window rows are always taken in window order and ``rownum`` is
        ignored. The native layer
        reports a failed fetch and an exhausted cursor the same way, so both
        come back as None.
        """
        self._check_live()
        if self.limit_from is not None:
            if self.row_counter is None:
                self.row_counter = self.limit_from
            if self.row_counter >= self.limit_from + self.limit_count:
                return None
            rownum = self.row_counter
            self.row_counter += 1

        position = native_position(rownum)
        if position is None:
            return None

        row = self.driver.fetch_row(self.handle, position)
        if not row:
            logger.debug(f'No row at position {position} (end of results or fetch failure)')
            return None

        options = self.connection.options
        fetchmode = fetchmode or options.fetchmode
        out = normalize_row(row, fetchmode, options.portability)
        if fetchmode is FetchMode.OBJECT:
            return attrdict(out)
        return out

    def fetch_into(self, target: list | dict, fetchmode: FetchMode | None = None,
                   rownum: int | None = None) -> bool:
        """Fetch a row into an existing list or dict.

        Returns True when a row was fetched, False at the end of the results.
        """
        row = self.fetch_row(fetchmode, rownum)
        if row is None:
            return False
        target.clear()
        if isinstance(target, dict):
            target.update(row if isinstance(row, dict) else enumerate(row))
        else:
            target.extend(row.values() if isinstance(row, dict) else row)
        return True

    def fetch_all(self, fetchmode: FetchMode | None = None) -> list[Any]:
        """Fetch every remaining row."""
        rows = []
        while (row := self.fetch_row(fetchmode)) is not None:
            rows.append(row)
        return rows

    def num_cols(self) -> int:
        """Number of columns in the result."""
        self._check_live()
        return self.connection.num_cols(self)

    def num_rows(self) -> int:
        """Row counts are not available from this backend."""
        return self.connection.num_rows(self)

    def free(self) -> bool:
        """Release the native result.

        Returns False without touching the native layer when the result was
        already released or its connection is closed.
        """
        if self.freed:
            logger.debug(f'Result {self.handle!r} already freed')
            return False
        if not self.connection.connected:
            logger.debug(f'Result {self.handle!r} outlived its connection')
            self.freed = True
            return False
        self.freed = True
        return bool(self.driver.free_result(self.handle))
