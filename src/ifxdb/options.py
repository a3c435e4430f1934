from collections.abc import Callable
from dataclasses import dataclass
from functools import wraps
from typing import Any

import pandas as pd
import pyarrow as pa
from ifxdb.sql import is_manip as default_is_manip
from ifxdb.types import FetchMode, FieldDescriptor, Portability

from libb import ConfigOptions, scriptname

__all__ = [
    'DatabaseOptions',
    'pandas_numpy_data_loader',
    'pandas_pyarrow_data_loader',
    'iterdict_data_loader',
    'use_iterdict_data_loader',
]

SUPPORTED_DRIVERS = ('informix', 'ifx')


def use_iterdict_data_loader(func):
    """Temporarily use default dict loader over user-specified loader"""

    @wraps(func)
    def inner(*args, **kwargs):
        cn = args[0]

        original_data_loader = cn.options.data_loader
        cn.options.data_loader = iterdict_data_loader

        try:
            return func(*args, **kwargs)
        finally:
            cn.options.data_loader = original_data_loader

    return inner


def iterdict_data_loader(data, columns, **kwargs) -> list:
    """Minimal data loader.

    Accepts additional keyword arguments for compatibility with other data
    loaders, but doesn't use them.
    """
    if not data:
        return []
    return list(data)


def _empty_dataframe(columns) -> pd.DataFrame:
    """Create empty DataFrame with column metadata."""
    df = pd.DataFrame(columns=FieldDescriptor.get_names(columns))
    df.attrs['column_types'] = FieldDescriptor.get_column_types_dict(columns)
    return df


def _as_records(data, names) -> list[list[Any]]:
    return [[row[name] for name in names] if isinstance(row, dict) else list(row)
            for row in data]


def pandas_numpy_data_loader(data, columns, **kwargs) -> pd.DataFrame:
    """Standard pandas DataFrame loader using NumPy.

    Always returns a DataFrame, with columns preserved for empty results.
    Column metadata is kept in the DataFrame.attrs attribute.
    """
    if not data:
        return _empty_dataframe(columns)

    names = FieldDescriptor.get_names(columns)
    df = pd.DataFrame.from_records(_as_records(data, names), columns=names)
    df.attrs['column_types'] = FieldDescriptor.get_column_types_dict(columns)
    return df


def pandas_pyarrow_data_loader(data, columns, **kwargs) -> pd.DataFrame:
    """PyArrow-based pandas DataFrame loader.

    Always returns a DataFrame, with columns preserved for empty results.
    """
    if not data:
        return _empty_dataframe(columns)

    names = FieldDescriptor.get_names(columns)
    records = _as_records(data, names)
    columns_data = [[rec[i] for rec in records] for i in range(len(names))]
    df = pa.table(columns_data, names=names).to_pandas(types_mapper=pd.ArrowDtype)
    df.attrs['column_types'] = FieldDescriptor.get_column_types_dict(columns)
    return df


@dataclass
class DatabaseOptions(ConfigOptions):
    """Options

    supported driver names: `informix` (alias `ifx`)

    - native_driver: registered name or importable module of the native
      client, or a driver object
    - persistent: open a persistent native connection
    - autocommit: initial autocommit state of new connections
    - portability: `Portability` flags applied to fetched rows and metadata
    - fetchmode: default `FetchMode` for fetched rows
    - is_manip: predicate deciding which statements join a transaction
    """
    drivername: str = 'informix'
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    dbsyntax: str = 'ifx'
    native_driver: Any = 'ifx'
    persistent: bool = False
    autocommit: bool = True
    portability: Portability = Portability.NONE
    fetchmode: FetchMode = FetchMode.ORDERED
    is_manip: Callable[[str], bool] | None = None
    appname: str = None
    data_loader: Callable[..., Any] | None = None

    def __post_init__(self):
        if self.drivername not in SUPPORTED_DRIVERS:
            raise ValueError(f'drivername must be one of: {list(SUPPORTED_DRIVERS)}')
        self.appname = self.appname or scriptname() or 'python_console'
        self.portability = Portability(int(self.portability or 0))
        if not isinstance(self.fetchmode, FetchMode):
            self.fetchmode = FetchMode(self.fetchmode)
        if self.is_manip is None:
            self.is_manip = default_is_manip
        if self.data_loader is None:
            self.data_loader = pandas_numpy_data_loader

    @property
    def dbname(self) -> str:
        """Native database spec, ``database@server`` when a host is given."""
        if not self.database:
            return ''
        return f'{self.database}@{self.hostname}' if self.hostname else self.database
