"""
Column metadata introspection for tables and live results.

Metadata is read from the native field-properties call, which describes a
result handle. For a table name a zero-row probe query provides the handle
and is released afterwards; a live result is described in place and left
open for its owner.
"""
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ifxdb.exceptions import ErrorKind, make_error
from ifxdb.result import QueryResult
from ifxdb.types import FieldDescriptor, Portability, TableInfo, TableInfoMode

if TYPE_CHECKING:
    from ifxdb.connection import ConnectionWrapper

logger = logging.getLogger(__name__)

__all__ = ['TableName', 'LiveResult', 'as_source', 'describe', 'build_descriptors']


@dataclass(frozen=True)
class TableName:
    """Describe a table through a probe query owned by the introspector."""
    name: str


@dataclass(frozen=True)
class LiveResult:
    """Describe a result owned by the caller."""
    result: QueryResult


def as_source(obj: Any) -> TableName | LiveResult:
    """Wrap a table name or QueryResult in its described-source variant."""
    if isinstance(obj, (TableName, LiveResult)):
        return obj
    if isinstance(obj, str):
        return TableName(obj)
    if isinstance(obj, QueryResult):
        return LiveResult(obj)
    raise make_error(ErrorKind.NEED_MORE_DATA,
                     message=f'expected a table name or query result, got {type(obj).__name__}')


def build_descriptors(properties: dict[str, str], count: int, table: str = '',
                      lowercase: bool = False) -> list[FieldDescriptor]:
    """Turn native field properties into descriptors in column order.

    The native call returns a mapping keyed by field name, so duplicate
    names collapse into one entry; a size different from ``count`` is
    reported rather than guessed around.
    """
    if len(properties) != count:
        raise make_error(ErrorKind.TRUNCATED,
                         native=f'{len(properties)} field properties for {count} columns')
    case = str.lower if lowercase else str
    return [FieldDescriptor.from_properties(case(name), value, case(table))
            for name, value in properties.items()]


def _probe(cn: 'ConnectionWrapper', table: str) -> Any:
    handle = cn.native_query(f'SELECT * FROM {table} WHERE 1=0')
    if not handle:
        raise cn.native_error()
    return handle


def describe(cn: 'ConnectionWrapper', source: Any,
             mode: TableInfoMode | int | None = None) -> list[FieldDescriptor] | TableInfo:
    """Describe the columns of a table or live result.

    With a falsy ``mode`` the flat descriptor list is returned. Otherwise a
    `TableInfo` with the field count and the indices requested by ``mode``.
    """
    source = as_source(source)
    driver = cn.driver
    if isinstance(source, TableName):
        handle = _probe(cn, source.name)
        table = source.name
    else:
        source.result._check_live()
        handle = source.result.handle
        table = ''

    try:
        properties = driver.fieldproperties(handle)
        if not properties:
            raise cn.native_error()
        count = driver.num_fields(handle)
        if not count:
            raise cn.native_error()
        lowercase = bool(cn.options.portability & Portability.LOWERCASE)
        fields = build_descriptors(properties, count, table, lowercase)
    finally:
        if isinstance(source, TableName):
            driver.free_result(handle)

    logger.debug(f'Described {len(fields)} field(s) of {table or "live result"}')
    if not mode:
        return fields

    mode = TableInfoMode(int(mode))
    info = TableInfo(num_fields=count, fields=fields)
    for i, col in enumerate(fields):
        if mode & TableInfoMode.ORDER:
            info.order[col.name] = i
        if mode & TableInfoMode.ORDERTABLE:
            info.ordertable.setdefault(col.table, {})[col.name] = i
    return info
