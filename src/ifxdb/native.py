"""
Native client layer interface.

ifxdb never talks to the server itself. It drives a resource-oriented client
library through the small set of calls described by ``NativeDriver``: every
call returns a handle or value on success and a falsy value on failure, and
the details of the last failure are read back with ``error``/``errormsg``.

Drivers are looked up by name, first in the registry filled by
``register_native_driver`` and then by importing a module of that name.
"""
import importlib
import logging
from typing import Any, Protocol, runtime_checkable

from ifxdb.exceptions import ErrorKind, make_error

logger = logging.getLogger(__name__)

# Position argument for sequential fetches
NEXT = 'NEXT'

_DRIVER_REGISTRY: dict[str, Any] = {}


@runtime_checkable
class NativeDriver(Protocol):
    """Calls ifxdb makes into the native client library.
    """

    def connect(self, database: str, user: str, password: str) -> Any:
        """Open a connection, returning a handle or a falsy value."""

    def pconnect(self, database: str, user: str, password: str) -> Any:
        """Open or reuse a persistent connection."""

    def close(self, conn: Any) -> bool:
        """Close a connection handle."""

    def query(self, sql: str, conn: Any, scroll: bool = False) -> Any:
        """Run a statement, returning a result handle or a falsy value.

        ``scroll`` requests a scroll cursor so rows can later be fetched by
        absolute position.
        """

    def fetch_row(self, result: Any, position: int | str) -> dict[str, Any] | None:
        """Fetch the row at 1-based ``position`` (or ``NEXT``) as a dict."""

    def affected_rows(self, result: Any) -> int:
        """Rows affected by the statement that produced ``result``."""

    def num_fields(self, result: Any) -> int:
        """Number of columns in ``result``."""

    def free_result(self, result: Any) -> bool:
        """Release a result handle."""

    def fieldproperties(self, result: Any) -> dict[str, str]:
        """Column name -> ``'TYPE;length;precision;scale;nullable'``."""

    def error(self, conn: Any = None) -> str:
        """Text of the last error, including its ``SQLCODE=<code>]`` marker."""

    def errormsg(self) -> str:
        """Message of the last error."""


def register_native_driver(name: str, driver: Any | None = None):
    """Register a native driver under ``name``.

    Can be called directly or used as a class decorator, in which case the
    class is instantiated with no arguments.

    Usage:
        @register_native_driver('ifx')
        class IfxDriver:
            ...
    """
    if driver is not None:
        _DRIVER_REGISTRY[name] = driver
        return driver

    def decorator(cls):
        _DRIVER_REGISTRY[name] = cls()
        return cls
    return decorator


def unregister_native_driver(name: str) -> None:
    """Remove a driver from the registry."""
    _DRIVER_REGISTRY.pop(name, None)


def load_native_driver(spec: Any) -> NativeDriver:
    """Resolve a driver name, module path or driver object.

    Raises ExtensionNotFound when the name is neither registered nor
    importable, or the imported object does not provide the driver calls.
    """
    if not isinstance(spec, str):
        driver = spec
    elif spec in _DRIVER_REGISTRY:
        driver = _DRIVER_REGISTRY[spec]
    else:
        try:
            module = importlib.import_module(spec)
        except ImportError as err:
            logger.debug(f'Native driver {spec!r} not importable: {err}')
            raise make_error(ErrorKind.EXTENSION_NOT_FOUND, message=f'extension not found: {spec}') from err
        driver = module.get_driver() if hasattr(module, 'get_driver') else module

    if not isinstance(driver, NativeDriver):
        raise make_error(ErrorKind.EXTENSION_NOT_FOUND,
                         message=f'{spec!r} does not provide the native driver interface')
    return driver
