"""
Shared value types: fetch modes, portability flags and column metadata.
"""
from dataclasses import asdict, dataclass, field
from enum import Enum, IntFlag
from typing import Any, Self

from libb import attrdict

__all__ = [
    'FetchMode',
    'Portability',
    'TableInfoMode',
    'FieldDescriptor',
    'TableInfo',
]


class FetchMode(Enum):
    """Shape of fetched rows."""
    ORDERED = 1     # list in column order
    ASSOC = 2       # dict keyed by field name
    OBJECT = 3      # attrdict keyed by field name


class Portability(IntFlag):
    """Normalisations applied to fetched data and metadata."""
    NONE = 0
    LOWERCASE = 1
    RTRIM = 2
    DELETE_COUNT = 4
    NUMROWS = 8
    ERRORS = 16
    NULL_TO_EMPTY = 32
    ALL = 63


class TableInfoMode(IntFlag):
    """Extra views built by table metadata introspection."""
    NONE = 0
    ORDER = 1
    ORDERTABLE = 2
    FULL = 3


@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    """Metadata for one result column.

    ``table`` is only set when the metadata was requested for a table name,
    ``flags`` is ``'not_null'`` for non-nullable columns.
    """
    table: str
    name: str
    type: str
    len: str
    flags: str = ''

    @property
    def nullable(self) -> bool:
        return self.flags != 'not_null'

    @classmethod
    def from_properties(cls, name: str, properties: str, table: str = '') -> Self:
        """Build from a native ``'TYPE;length;precision;scale;nullable'`` string."""
        props = properties.split(';')
        notnull = len(props) > 4 and props[4] == 'N'
        return cls(
            table=table,
            name=name,
            type=props[0],
            len=props[1] if len(props) > 1 else '',
            flags='not_null' if notnull else '',
            )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @staticmethod
    def get_names(columns: list[Self]) -> list[str]:
        """Get column names from a list of descriptors.
        """
        return [col.name for col in columns]

    @staticmethod
    def get_column_types_dict(columns: list[Self]) -> dict[str, dict[str, Any]]:
        """Get a dictionary of column metadata indexed by name.
        """
        return {col.name: col.to_dict() for col in columns}


@dataclass
class TableInfo:
    """Full-mode metadata: descriptors plus lookup indices.

    ``order`` maps field name to position, ``ordertable`` maps table name to
    field name to position. Each is only filled when requested by the mode.
    """
    num_fields: int
    fields: list[FieldDescriptor] = field(default_factory=list)
    order: dict[str, int] = field(default_factory=dict)
    ordertable: dict[str, dict[str, int]] = field(default_factory=dict)

    def __getitem__(self, index: int) -> FieldDescriptor:
        return self.fields[index]

    def __len__(self) -> int:
        return len(self.fields)

    def __iter__(self):
        return iter(self.fields)

    def to_attrdict(self) -> attrdict:
        return attrdict(
            num_fields=self.num_fields,
            fields=[col.to_dict() for col in self.fields],
            order=dict(self.order),
            ordertable={k: dict(v) for k, v in self.ordertable.items()},
            )
