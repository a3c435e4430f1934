"""
Tests for transaction bookkeeping across the autocommit toggle.
"""
import logging

import ifxdb as db
import pytest
from ifxdb.exceptions import ErrorKind, IntegrityViolationError, QueryError
from ifxdb.transaction import Transaction, TransactionState

logger = logging.getLogger(__name__)


class TestTransactionState:

    def test_defaults(self):
        state = TransactionState()
        assert state.autocommit is True
        assert state.opcount == 0
        assert not state.in_transaction

    def test_set_autocommit_issues_nothing(self, ifx_conn, fake_driver):
        assert ifx_conn.autocommit(False) is True
        assert ifx_conn.transaction.autocommit is False
        assert ifx_conn.autocommit(True) is True
        assert fake_driver.issued == []

    def test_enable_autocommit_mid_transaction_warns(self, ifx_conn, caplog):
        ifx_conn.autocommit(False)
        ifx_conn.execute('insert into customer values (1)')
        with caplog.at_level(logging.WARNING, logger='ifxdb.transaction'):
            ifx_conn.autocommit(True)
        assert 'uncommitted' in caplog.text
        assert ifx_conn.transaction.opcount == 1


class TestCounter:
    """Operation counter and BEGIN WORK placement."""

    def test_autocommit_on_never_begins(self, ifx_conn, fake_driver):
        ifx_conn.execute('insert into customer values (1)')
        ifx_conn.execute('update customer set fname = null')
        assert 'BEGIN WORK' not in fake_driver.issued
        assert ifx_conn.transaction.opcount == 0

    @pytest.mark.parametrize('n', [1, 2, 5])
    def test_n_statements(self, ifx_conn, fake_driver, n):
        ifx_conn.autocommit(False)
        for i in range(n):
            ifx_conn.execute(f'insert into customer values ({i})')
        assert ifx_conn.transaction.opcount == n
        assert fake_driver.issued.count('BEGIN WORK') == 1
        assert fake_driver.issued[0] == 'BEGIN WORK'
        assert fake_driver.issued[1] == 'insert into customer values (0)'

    def test_reads_and_control_not_counted(self, ifx_conn, fake_driver):
        ifx_conn.autocommit(False)
        ifx_conn.query('select * from customer').free()
        ifx_conn.execute('set isolation to dirty read')
        assert ifx_conn.transaction.opcount == 0
        assert 'BEGIN WORK' not in fake_driver.issued

    def test_begin_failure_surfaces_and_skips_statement(self, ifx_conn, fake_driver):
        fake_driver.fail('BEGIN WORK', -535, 'Already in transaction.')
        ifx_conn.autocommit(False)
        with pytest.raises(db.DatabaseError) as exc:
            ifx_conn.execute('insert into customer values (1)')
        assert exc.value.kind is ErrorKind.ERROR
        assert 'SQLCODE=-535' in exc.value.native
        assert ifx_conn.transaction.opcount == 0
        assert fake_driver.issued == ['BEGIN WORK']

    def test_failed_statement_still_counted(self, ifx_conn, fake_driver):
        fake_driver.fail('insert into customer', -239, 'Could not insert new row - duplicate value.')
        ifx_conn.autocommit(False)
        with pytest.raises(IntegrityViolationError):
            ifx_conn.execute('insert into customer values (101)')
        assert ifx_conn.transaction.opcount == 1


class TestCommitRollback:

    @pytest.mark.parametrize('method', ['commit', 'rollback'])
    def test_noop_when_nothing_open(self, ifx_conn, fake_driver, method):
        ifx_conn.autocommit(False)
        assert getattr(ifx_conn, method)() is True
        assert fake_driver.issued == []

    @pytest.mark.parametrize(('method', 'statement'), [
        ('commit', 'COMMIT WORK'),
        ('rollback', 'ROLLBACK WORK'),
    ])
    def test_resets_counter(self, ifx_conn, fake_driver, method, statement):
        ifx_conn.autocommit(False)
        ifx_conn.execute('insert into customer values (1)')
        ifx_conn.execute('insert into customer values (2)')
        assert getattr(ifx_conn, method)() is True
        assert fake_driver.issued[-1] == statement
        assert ifx_conn.transaction.opcount == 0

        ifx_conn.execute('insert into customer values (3)')
        assert fake_driver.issued[-2:] == ['BEGIN WORK', 'insert into customer values (3)']

    @pytest.mark.parametrize(('method', 'statement'), [
        ('commit', 'COMMIT WORK'),
        ('rollback', 'ROLLBACK WORK'),
    ])
    def test_failure_still_resets_counter(self, ifx_conn, fake_driver, method, statement):
        ifx_conn.autocommit(False)
        ifx_conn.execute('insert into customer values (1)')
        fake_driver.fail(statement, -255, 'Not in transaction.')
        with pytest.raises(db.DatabaseError):
            getattr(ifx_conn, method)()
        assert ifx_conn.transaction.opcount == 0

    def test_failed_commit_desynchronises_local_state(self, ifx_conn, fake_driver):
        """After a failed COMMIT the server transaction may still be open, but
        the local counter says it is closed: the next statement opens a
        second BEGIN WORK and a later commit is skipped entirely once the
        counter is back to zero."""
        ifx_conn.autocommit(False)
        ifx_conn.execute('insert into customer values (1)')
        fake_driver.fail('COMMIT WORK', -255, 'Not in transaction.')
        with pytest.raises(db.DatabaseError):
            ifx_conn.commit()

        assert not ifx_conn.in_transaction
        ifx_conn.commit()
        assert fake_driver.issued.count('COMMIT WORK') == 1

        ifx_conn.execute('insert into customer values (2)')
        assert fake_driver.issued.count('BEGIN WORK') == 2


class TestTransactionContext:

    def test_commit_on_success(self, ifx_conn, fake_driver):
        with Transaction(ifx_conn) as tx:
            tx.execute('insert into customer values (1)')
            tx.execute('delete from customer where customer_num = 1')
            assert ifx_conn.transaction.opcount == 2
        assert fake_driver.issued[-1] == 'COMMIT WORK'
        assert ifx_conn.transaction.autocommit is True

    def test_rollback_on_error(self, ifx_conn, fake_driver):
        fake_driver.fail('update customer', -217, 'Column (nope) not found in any table in the query.')
        with pytest.raises(QueryError), db.transaction(ifx_conn) as tx:
            tx.execute('insert into customer values (1)')
            tx.execute('update customer set nope = 1')
        assert fake_driver.issued[-1] == 'ROLLBACK WORK'
        assert ifx_conn.transaction.opcount == 0
        assert ifx_conn.transaction.autocommit is True

    def test_restores_previous_autocommit(self, ifx_conn):
        ifx_conn.autocommit(False)
        with Transaction(ifx_conn) as tx:
            tx.execute('insert into customer values (1)')
        assert ifx_conn.transaction.autocommit is False

    def test_nested_not_supported(self, ifx_conn):
        with Transaction(ifx_conn), pytest.raises(RuntimeError):
            Transaction(ifx_conn)

    def test_select_inside(self, ifx_conn, fake_driver):
        sql = 'select customer_num from customer where customer_num = 101'
        fake_driver.add_result(sql, [{'customer_num': 101}])
        with Transaction(ifx_conn) as tx:
            assert tx.select_scalar(sql) == 101
