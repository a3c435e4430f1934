"""
Informix connection handling.

This module provides:
1. The `connect()` function for opening native connections
2. The `ConnectionWrapper` class that drives the native client: statement
   execution, transaction bookkeeping, error translation and metadata

The ConnectionWrapper is the primary database client, providing methods like:
- query(sql) - Execute SQL, returning a QueryResult for reads or DB_OK
- execute(sql) - Execute SQL and return affected row count
- select(sql) - Execute a read and load every row through the data loader
- commit() / rollback() / autocommit(onoff) - Transaction control
- table_info(table_or_result, mode) - Column metadata
"""
import logging
import time
from dataclasses import fields
from functools import wraps
from typing import Any, Self

from ifxdb.cache import Cache, cacheable_metadata
from ifxdb.exceptions import DatabaseError, ErrorKind, error_code, error_native
from ifxdb.exceptions import make_error
from ifxdb.metadata import describe
from ifxdb.native import load_native_driver
from ifxdb.options import DatabaseOptions, use_iterdict_data_loader
from ifxdb.result import QueryResult
from ifxdb.sql import StatementKind, classify, ddl_table, get_special_query
from ifxdb.transaction import DB_OK, TransactionState
from ifxdb.types import FetchMode, FieldDescriptor, TableInfo, TableInfoMode

from libb import attrdict, load_options

__all__ = [
    'ConnectionWrapper',
    'connect',
    'DB_OK',
]

logger = logging.getLogger(__name__)


def dumpsql(func):
    """Decorator for logging SQL sent to the native layer."""
    @wraps(func)
    def wrapper(self, sql: str, *args: Any, **kwargs: Any):
        start = time.time()
        logger.debug(f'SQL:\n{sql}')
        try:
            return func(self, sql, *args, **kwargs)
        finally:
            elapsed = time.time() - start
            self.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


class ConnectionWrapper:
    """Wraps a native connection handle with the portable driver interface.

    One connection owns one transaction state and must not be shared by
    concurrent callers. After `close()` every operation raises
    ConnectionFailure with kind NOT_CONNECTED.
    """

    def __init__(self, driver: Any, handle: Any, options: DatabaseOptions) -> None:
        self.driver = driver
        self.handle = handle
        self.options = options
        self.transaction = TransactionState(options.autocommit)
        self.last_query: str | None = None
        self.affected: int | None = 0
        self.calls = 0
        self.time = 0

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        if self.connected:
            self.close()

    def __repr__(self) -> str:
        state = 'open' if self.connected else 'closed'
        return f'ConnectionWrapper({self.options.dbname!r}, {state}, {self.transaction!r})'

    @property
    def connected(self) -> bool:
        return self.handle is not None

    @property
    def dialect(self) -> str:
        return self.options.dbsyntax

    @property
    def in_transaction(self) -> bool:
        return self.transaction.in_transaction

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1

    def _check_connected(self) -> None:
        if not self.connected:
            raise make_error(ErrorKind.NOT_CONNECTED)

    def close(self) -> bool:
        """Close the native connection.

        Returns False if the connection was already closed. Uncommitted work
        is left to the server, which rolls it back.
        """
        if not self.connected:
            return False
        if self.transaction.opcount:
            logger.warning(f'Closing connection with {self.transaction.opcount} uncommitted operation(s)')
        ret = self.driver.close(self.handle)
        self.handle = None
        Cache.get_instance().clear_for_connection(id(self))
        logger.debug(f'Connection closed: {self.calls} queries in {self.time:.2f}s')
        return bool(ret)

    def error_native(self) -> str:
        """Native code and message of the last error."""
        return error_native(self.driver)

    def native_error(self, kind: ErrorKind | None = None) -> DatabaseError:
        """Build the portable error for the last native failure.

        Uses ``kind`` when given, otherwise translates the native error code.
        """
        if kind is None:
            kind = error_code(self.driver.error())
        return make_error(kind, self.error_native())

    @dumpsql
    def native_query(self, sql: str, scroll: bool = False) -> Any:
        """Send a statement to the native layer, returning its raw result.
        """
        self._check_connected()
        return self.driver.query(sql, self.handle, scroll)

    def simple_query(self, sql: str) -> QueryResult | bool:
        """Execute a statement.

        Read statements run on a scroll cursor and return a live QueryResult
        the caller must free. Other statements return DB_OK after their
        native result is released. Manipulation statements issued while
        autocommit is off are counted in the open transaction, which is
        begun first when none is open.
        """
        self._check_connected()
        kind = classify(sql, self.options.is_manip)
        self.last_query = sql
        self.affected = None

        if kind is StatementKind.READ:
            handle = self.native_query(sql, scroll=True)
        else:
            if kind is StatementKind.MANIP:
                self.transaction.begin_if_needed(self)
            handle = self.native_query(sql)

        if not handle:
            err = self.native_error()
            logger.error(f'Error with query:\nSQL:\n{sql}\n{err.native}')
            raise err

        self.affected = self.driver.affected_rows(handle)

        if kind is StatementKind.READ:
            return QueryResult(self, handle, scrollable=True)

        # Results of non-read statements hold native resources too
        self.driver.free_result(handle)
        if table := ddl_table(sql):
            Cache.get_instance().clear_for_table(table)
        logger.debug(f'Statement affected {self.affected} row(s)')
        return DB_OK

    query = simple_query

    def execute(self, sql: str) -> int:
        """Execute a statement and return the affected row count.

        A result produced by a read statement is freed immediately.
        """
        result = self.simple_query(sql)
        if isinstance(result, QueryResult):
            result.free()
        return self.affected_rows()

    def limit_query(self, sql: str, from_: int, count: int) -> QueryResult:
        """Execute a read statement and expose only rows ``from_`` to ``from_ + count - 1``.

        The window is walked with absolute-position fetches on the scroll
        cursor.
        """
        result = self.simple_query(sql)
        if not isinstance(result, QueryResult):
            raise make_error(ErrorKind.NEED_MORE_DATA, message='limit_query requires a read statement')
        result.limit_from = from_
        result.limit_count = count
        return result

    def affected_rows(self) -> int:
        """Rows affected by the last statement, 0 unless it manipulated data.
        """
        if self.last_query is not None and self.options.is_manip(self.last_query):
            return self.affected or 0
        return 0

    def num_rows(self, result: QueryResult) -> int:
        """Row counts are not available before the cursor is exhausted."""
        raise make_error(ErrorKind.NOT_CAPABLE, message='num_rows is not supported by this backend')

    def num_cols(self, result: QueryResult) -> int:
        """Number of columns in a live result."""
        self._check_connected()
        cols = self.driver.num_fields(result.handle)
        if not cols:
            raise self.native_error()
        return cols

    def free_result(self, result: QueryResult) -> bool:
        return result.free()

    def next_result(self, result: QueryResult) -> bool:
        """Statements produce a single result set."""
        return False

    def fetch_row(self, result: QueryResult, fetchmode: FetchMode | None = None,
                  rownum: int | None = None) -> Any:
        return result.fetch_row(fetchmode, rownum)

    def autocommit(self, onoff: bool = True) -> bool:
        """Enable/disable automatic commits."""
        self._check_connected()
        return self.transaction.set_autocommit(onoff)

    def commit(self) -> bool:
        """Commit the current transaction."""
        self._check_connected()
        return self.transaction.commit(self)

    def rollback(self) -> bool:
        """Roll back (undo) the current transaction.

        Metadata cached through this connection may describe rolled-back DDL
        and is dropped.
        """
        self._check_connected()
        try:
            return self.transaction.rollback(self)
        finally:
            Cache.get_instance().clear_for_connection(id(self))

    def get_special_query(self, kind: str) -> str | None:
        return get_special_query(kind)

    def list_tables(self) -> list[str]:
        """Names of the user tables in the current database."""
        return [row[0].strip() for row in self._fetch_all(get_special_query('tables'), FetchMode.ORDERED)]

    @cacheable_metadata('table_info')
    def table_info(self, source: Any, mode: TableInfoMode | int | None = None
                   ) -> list[FieldDescriptor] | TableInfo:
        """Column metadata of a table name or live QueryResult.

        Table-name lookups are cached; pass ``bypass_cache=True`` to re-read.
        """
        self._check_connected()
        return describe(self, source, mode)

    def _fetch_all(self, sql: str, fetchmode: FetchMode) -> list[Any]:
        result = self.simple_query(sql)
        if not isinstance(result, QueryResult):
            raise make_error(ErrorKind.NEED_MORE_DATA, message='select requires a read statement')
        try:
            return result.fetch_all(fetchmode)
        finally:
            result.free()

    def select(self, sql: str, **kwargs: Any) -> Any:
        """Execute a read statement and load every row through the data loader.
        """
        result = self.simple_query(sql)
        if not isinstance(result, QueryResult):
            raise make_error(ErrorKind.NEED_MORE_DATA, message='select requires a read statement')
        try:
            columns = describe(self, result)
            data = result.fetch_all(FetchMode.ASSOC)
        finally:
            result.free()
        logger.debug(f'Select query returned {len(data)} row(s)')
        return self.options.data_loader(data, columns, **kwargs)

    @use_iterdict_data_loader
    def select_column(self, sql: str) -> list[Any]:
        """Execute a query and return the first column as a list.
        """
        return [next(iter(row.values())) for row in self.select(sql)]

    @use_iterdict_data_loader
    def select_row(self, sql: str) -> attrdict:
        """Execute a query and return a single row as an attribute dictionary.

        Raises AssertionError if the query returns zero or multiple rows.
        """
        data = self.select(sql)
        assert len(data) == 1, f'Expected one row, got {len(data)}'
        return attrdict(data[0])

    @use_iterdict_data_loader
    def select_row_or_none(self, sql: str) -> attrdict | None:
        data = self.select(sql)
        if len(data) == 1:
            return attrdict(data[0])
        return None

    @use_iterdict_data_loader
    def select_scalar(self, sql: str) -> Any:
        """Execute a query and return a single scalar value.

        Raises AssertionError if the query returns zero or multiple rows.
        """
        data = self.select(sql)
        assert len(data) == 1, f'Expected one row, got {len(data)}'
        return next(iter(data[0].values()))


@load_options(cls=DatabaseOptions)
def connect(options: DatabaseOptions | dict[str, Any] | str,
            config: Any | None = None, **kw: Any) -> ConnectionWrapper:
    """Open a connection through the native client.

    Args:
        options: Can be:
                - DatabaseOptions object
                - String path to configuration
                - Dictionary of options
                - Options specified as keyword arguments
        config: Configuration object (for loading from config files)
        **kw: Additional keyword arguments to override options,
              e.g. ``persistent=True``

    Raises ExtensionNotFound when the native driver cannot be loaded and
    ConnectionFailure when the server refuses the connection.
    """
    if isinstance(options, DatabaseOptions):
        for field in fields(options):
            kw.pop(field.name, None)
    else:
        options_func = load_options(cls=DatabaseOptions)(lambda o, c: o)
        options = options_func(options, config, **kw)

    driver = load_native_driver(options.native_driver)
    open_func = driver.pconnect if options.persistent else driver.connect
    handle = open_func(options.dbname, options.username or '', options.password or '')
    if not handle:
        raise make_error(ErrorKind.CONNECT_FAILED, error_native(driver))

    logger.debug(f'Connected to {options.dbname!r} (persistent={options.persistent})')
    return ConnectionWrapper(driver, handle, options)
