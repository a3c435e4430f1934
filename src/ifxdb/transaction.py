"""
Transaction bookkeeping across the autocommit toggle.

The native layer has no autocommit switch of its own: while autocommit is
off, ifxdb opens a transaction with ``BEGIN WORK`` before the first
manipulation statement and counts every manipulation statement after it.
The counter is only reset by `commit()` or `rollback()`.
"""
import logging
import threading
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ifxdb.connection import ConnectionWrapper

logger = logging.getLogger(__name__)

DB_OK = True

_local = threading.local()


class TransactionState:
    """Autocommit flag and open-transaction operation counter of one connection.
    """

    def __init__(self, autocommit: bool = True) -> None:
        self.autocommit = bool(autocommit)
        self.opcount = 0

    def __repr__(self) -> str:
        return f'TransactionState(autocommit={self.autocommit}, opcount={self.opcount})'

    @property
    def in_transaction(self) -> bool:
        return self.opcount > 0

    def set_autocommit(self, onoff: bool = True) -> bool:
        """Flip the autocommit flag. No statement is sent to the server.
        """
        onoff = bool(onoff)
        if onoff and self.opcount > 0:
            # TODO: decide whether enabling autocommit should commit the open transaction
            logger.warning(f'Autocommit enabled with {self.opcount} uncommitted operation(s) open')
        self.autocommit = onoff
        return DB_OK

    def begin_if_needed(self, cn: 'ConnectionWrapper') -> None:
        """Count a manipulation statement, opening a transaction first if none is open.

        Raises the translated native error when ``BEGIN WORK`` fails; the
        counter is left untouched in that case.
        """
        if self.autocommit:
            return
        if self.opcount == 0:
            if not cn.native_query('BEGIN WORK'):
                raise cn.native_error()
            logger.debug('Opened transaction with BEGIN WORK')
        self.opcount += 1

    def _finish(self, cn: 'ConnectionWrapper', statement: str) -> bool:
        if self.opcount == 0:
            return DB_OK
        result = cn.native_query(statement)
        count, self.opcount = self.opcount, 0
        if not result:
            logger.error(f'{statement} failed after {count} operation(s); local counter already reset')
            raise cn.native_error()
        logger.debug(f'{statement} closed transaction of {count} operation(s)')
        return DB_OK

    def commit(self, cn: 'ConnectionWrapper') -> bool:
        """Commit the open transaction, if any."""
        return self._finish(cn, 'COMMIT WORK')

    def rollback(self, cn: 'ConnectionWrapper') -> bool:
        """Roll back the open transaction, if any."""
        return self._finish(cn, 'ROLLBACK WORK')


class Transaction:
    """Context manager for running multiple commands in a transaction.

    Autocommit is switched off on entry and restored on exit. The work is
    committed when the block finishes and rolled back when it raises.
    Nested transactions on one connection within a thread are not supported.

    Examples
        with Transaction(cn) as tx:
            tx.execute('delete from ...')
            tx.execute('update ...')
    """

    def __init__(self, cn: 'ConnectionWrapper') -> None:
        self.connection = cn
        self._previous_autocommit: bool | None = None

        if not hasattr(_local, 'active_transactions'):
            _local.active_transactions = {}

        if id(cn) in _local.active_transactions:
            raise RuntimeError('Nested transactions are not supported')

    def __enter__(self) -> 'Transaction':
        _local.active_transactions[id(self.connection)] = True
        self._previous_autocommit = self.connection.transaction.autocommit
        self.connection.autocommit(False)
        logger.debug(f'Started transaction for connection {id(self.connection)}')
        return self

    def __exit__(self, exc_type: type | None, value: Exception | None, traceback: Any | None) -> None:
        try:
            if exc_type is not None:
                logger.warning('Rolling back the current transaction')
                self.connection.rollback()
            else:
                self.connection.commit()
                logger.debug(f'Committed transaction for connection {id(self.connection)}')
        finally:
            _local.active_transactions.pop(id(self.connection), None)
            if self.connection.connected:
                self.connection.autocommit(self._previous_autocommit)

    def execute(self, sql: str) -> int:
        """Execute SQL within transaction context"""
        return self.connection.execute(sql)

    def query(self, sql: str) -> Any:
        return self.connection.query(sql)

    def select(self, sql: str, **kwargs: Any) -> Any:
        """Execute SELECT query within transaction context"""
        return self.connection.select(sql, **kwargs)

    def select_row(self, sql: str) -> Any:
        return self.connection.select_row(sql)

    def select_scalar(self, sql: str) -> Any:
        return self.connection.select_scalar(sql)
