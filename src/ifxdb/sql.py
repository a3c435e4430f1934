"""
Statement classification.

ifxdb does not parse SQL. It only needs to know whether a statement reads
rows (and so needs a scroll cursor and a live result) and whether it
manipulates data (and so takes part in the transaction counter).

- `is_read()` - the lexical ``SELECT`` test used to pick the execution path
- `is_manip()` - default manipulation predicate
- `classify()` - both tests folded into a `StatementKind`
- `get_special_query()` - catalog queries for backend information
"""
import re
from collections.abc import Callable
from enum import Enum, auto

__all__ = [
    'StatementKind',
    'classify',
    'is_read',
    'is_manip',
    'ddl_table',
    'get_special_query',
]


class StatementKind(Enum):
    """Execution path chosen for a statement."""
    READ = auto()       # scroll cursor, live result returned
    MANIP = auto()      # counted in the open transaction
    OTHER = auto()      # DDL/control, result released


_READ = re.compile(r'(SELECT)', re.IGNORECASE)

_MANIPS = ('INSERT|UPDATE|DELETE|REPLACE|'
           'CREATE|DROP|'
           'LOAD DATA|SELECT .* INTO .* FROM|COPY|'
           'ALTER|GRANT|REVOKE|'
           'LOCK|UNLOCK')
_MANIP = re.compile(rf'^\s*"?({_MANIPS})\s+', re.IGNORECASE)

_DDL_TABLE = re.compile(r'^\s*(?:CREATE|ALTER|DROP)\s+(?:(?:RAW|STANDARD|TEMP)\s+)?TABLE\s+'
                        r'(?:IF\s+(?:NOT\s+)?EXISTS\s+)?"?([\w.:@]+)"?', re.IGNORECASE)

_SPECIAL_QUERIES = {
    'tables': 'select tabname from systables where tabid >= 100',
    }


def is_read(sql: str) -> bool:
    """True if ``SELECT`` occurs anywhere in the statement text.

    Deliberately lexical: ``INSERT INTO t SELECT ...`` counts as a read.
    """
    return bool(_READ.search(sql))


def is_manip(sql: str) -> bool:
    """True if the statement changes data or schema.

    >>> is_manip('insert into t values (1)')
    True
    >>> is_manip('  "UPDATE t set x=1')
    True
    >>> is_manip('select * from t')
    False
    >>> is_manip('BEGIN WORK')
    False
    """
    return bool(_MANIP.match(sql))


def classify(sql: str, is_manip: Callable[[str], bool] = is_manip) -> StatementKind:
    """Pick the execution path for a statement.

    The read test wins, so a statement is only counted as manipulation when
    it does not mention ``SELECT`` at all.
    """
    if is_read(sql):
        return StatementKind.READ
    if is_manip(sql):
        return StatementKind.MANIP
    return StatementKind.OTHER


def ddl_table(sql: str) -> str | None:
    """Name of the table a CREATE/ALTER/DROP TABLE statement touches."""
    match = _DDL_TABLE.match(sql)
    return match.group(1) if match else None


def get_special_query(kind: str) -> str | None:
    """Query returning backend information of the given kind.

    Only ``'tables'`` (user tables, ``tabid >= 100``) is known; anything else
    returns None.
    """
    return _SPECIAL_QUERIES.get(kind)
