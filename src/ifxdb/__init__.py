"""
Informix database access through a resource-oriented native client.

All query operations can be called either as:
- Module functions: db.query(cn, sql)
- ConnectionWrapper methods: cn.query(sql)

The module functions are facades over the connection methods.
"""
__version__ = '0.1.0'

from typing import Any

from ifxdb.connection import DB_OK, ConnectionWrapper, connect
from ifxdb.exceptions import ERRORCODE_MAP, ConnectionFailure, DatabaseError
from ifxdb.exceptions import ErrorKind, ExtensionNotFound, IntegrityViolationError
from ifxdb.exceptions import MetadataIntegrityError, NotCapableError, QueryError
from ifxdb.exceptions import TypeConversionError, ValidationError, error_code
from ifxdb.metadata import LiveResult, TableName, describe
from ifxdb.native import NativeDriver, register_native_driver
from ifxdb.options import DatabaseOptions
from ifxdb.result import QueryResult
from ifxdb.sql import StatementKind, classify, get_special_query
from ifxdb.transaction import Transaction as transaction
from ifxdb.types import FetchMode, FieldDescriptor, Portability, TableInfo
from ifxdb.types import TableInfoMode


def query(cn: ConnectionWrapper, sql: str) -> QueryResult | bool:
    """Execute a statement, returning a live result for reads and DB_OK otherwise.
    """
    return cn.query(sql)


def execute(cn: ConnectionWrapper, sql: str) -> int:
    """Execute a SQL statement and return affected row count.
    """
    return cn.execute(sql)


delete = execute
insert = execute
update = execute


def select(cn: ConnectionWrapper, sql: str, **kwargs: Any) -> Any:
    """Execute a read statement and load all rows.
    """
    return cn.select(sql, **kwargs)


def select_column(cn: ConnectionWrapper, sql: str) -> list[Any]:
    """Execute a query and return a single column as a list.
    """
    return cn.select_column(sql)


def select_row(cn: ConnectionWrapper, sql: str) -> Any:
    """Execute a query and return a single row.
    """
    return cn.select_row(sql)


def select_row_or_none(cn: ConnectionWrapper, sql: str) -> Any | None:
    return cn.select_row_or_none(sql)


def select_scalar(cn: ConnectionWrapper, sql: str) -> Any:
    """Execute a query and return a single scalar value.
    """
    return cn.select_scalar(sql)


def fetch_row(result: QueryResult, fetchmode: FetchMode | None = None,
              rownum: int | None = None) -> Any:
    """Fetch one row from a live result, None at the end of the results.
    """
    return result.fetch_row(fetchmode, rownum)


def free_result(result: QueryResult) -> bool:
    return result.free()


def table_info(cn: ConnectionWrapper, source: Any, mode: TableInfoMode | int | None = None,
               bypass_cache: bool = False) -> Any:
    """Column metadata of a table name or live result.
    """
    return cn.table_info(source, mode, bypass_cache=bypass_cache)


__all__ = [
    'connect',
    'ConnectionWrapper',
    'transaction',
    'DatabaseOptions',
    'DB_OK',
    'query',
    'execute',
    'delete',
    'insert',
    'update',
    'select',
    'select_column',
    'select_row',
    'select_row_or_none',
    'select_scalar',
    'fetch_row',
    'free_result',
    'table_info',
    'describe',
    'classify',
    'get_special_query',
    'register_native_driver',
    'NativeDriver',
    'QueryResult',
    'StatementKind',
    'FetchMode',
    'Portability',
    'TableInfoMode',
    'TableInfo',
    'FieldDescriptor',
    'TableName',
    'LiveResult',
    'ErrorKind',
    'ERRORCODE_MAP',
    'error_code',
    'DatabaseError',
    'ExtensionNotFound',
    'ConnectionFailure',
    'QueryError',
    'IntegrityViolationError',
    'TypeConversionError',
    'NotCapableError',
    'ValidationError',
    'MetadataIntegrityError',
]
