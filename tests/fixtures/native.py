"""
In-memory stand-in for the Informix native client.

Records every call made by ifxdb so tests can assert on the exact native
traffic (BEGIN WORK placement, scroll flags, fetch positions, frees).

Usage:
    def test_something(fake_driver, ifx_conn):
        fake_driver.add_result('select id from t', [{'id': 1}])
        fake_driver.fail('insert into t', -239, 'Could not insert new row')
"""
import itertools

import pytest
from ifxdb.native import NEXT, register_native_driver, unregister_native_driver

_ids = itertools.count(1)


class FakeHandle:
    """Native connection handle."""

    def __init__(self, database, user, persistent=False):
        self.id = next(_ids)
        self.database = database
        self.user = user
        self.persistent = persistent
        self.closed = False

    def __repr__(self):
        return f'FakeHandle({self.id})'


class FakeResult:
    """Native result handle with a scroll position."""

    def __init__(self, sql, rows=(), props=None, affected=0, scroll=False, num_fields=None):
        self.id = next(_ids)
        self.sql = sql
        self.rows = [dict(r) for r in rows]
        self.props = dict(props or {})
        self.affected = affected
        self.scroll = scroll
        self.position = 0
        self.freed = False
        self.num_fields = len(self.props) if num_fields is None else num_fields

    def __repr__(self):
        return f'FakeResult({self.id})'


class FakeNativeDriver:
    """Scriptable native driver.
    """

    def __init__(self):
        self.calls = []
        self.tables = {}
        self.results = {}
        self.failures = []
        self.refuse_connect = False
        self.last_error = ''
        self.last_message = ''
        self.issued = []

    # scripting helpers

    def add_table(self, name, props, rows=(), num_fields=None):
        self.tables[name.lower()] = (dict(props), list(rows), num_fields)

    def add_result(self, sql, rows, props=None, affected=None, num_fields=None):
        if props is None and rows:
            props = {key: 'SQLCHAR;10;0;0;Y' for key in rows[0]}
        self.results[sql] = (rows, props or {}, affected, num_fields)

    def fail(self, prefix, code, message='error', sqlstate='IX000'):
        self.failures.append((prefix.lower(), f'E [SQLSTATE={sqlstate} SQLCODE={code}]', message))

    def calls_to(self, name):
        return [args for (method, args) in self.calls if method == name]

    def _set_error(self, error, message):
        self.last_error = error
        self.last_message = message

    # native interface

    def connect(self, database, user, password):
        self.calls.append(('connect', (database, user, password)))
        if self.refuse_connect:
            self._set_error('E [SQLSTATE=08004 SQLCODE=-908]', 'Attempt to connect to database server failed.')
            return False
        return FakeHandle(database, user)

    def pconnect(self, database, user, password):
        self.calls.append(('pconnect', (database, user, password)))
        if self.refuse_connect:
            self._set_error('E [SQLSTATE=08004 SQLCODE=-908]', 'Attempt to connect to database server failed.')
            return False
        return FakeHandle(database, user, persistent=True)

    def close(self, conn):
        self.calls.append(('close', (conn,)))
        conn.closed = True
        return True

    def query(self, sql, conn, scroll=False):
        self.calls.append(('query', (sql, scroll)))
        self.issued.append(sql)
        for prefix, error, message in self.failures:
            if sql.lower().startswith(prefix):
                self._set_error(error, message)
                return False

        if sql in self.results:
            rows, props, affected, num_fields = self.results[sql]
            return FakeResult(sql, rows, props, len(rows) if affected is None else affected,
                              scroll, num_fields)

        lowered = sql.lower()
        if lowered.startswith('select * from ') and lowered.endswith(' where 1=0'):
            table = lowered[len('select * from '):-len(' where 1=0')]
            if table not in self.tables:
                self._set_error('E [SQLSTATE=42S02 SQLCODE=-206]',
                                'The specified table is not in the database.')
                return False
            props, _, num_fields = self.tables[table]
            return FakeResult(sql, (), props, 0, scroll, num_fields)

        return FakeResult(sql, affected=1, scroll=scroll)

    def fetch_row(self, result, position):
        self.calls.append(('fetch_row', (result, position)))
        index = result.position + 1 if position == NEXT else position
        if index < 1 or index > len(result.rows):
            return False
        result.position = index
        return dict(result.rows[index - 1])

    def affected_rows(self, result):
        return result.affected

    def num_fields(self, result):
        self.calls.append(('num_fields', (result,)))
        return result.num_fields

    def free_result(self, result):
        self.calls.append(('free_result', (result,)))
        if result.freed:
            return False
        result.freed = True
        return True

    def fieldproperties(self, result):
        self.calls.append(('fieldproperties', (result,)))
        return dict(result.props)

    def error(self, conn=None):
        return self.last_error

    def errormsg(self):
        return self.last_message


@pytest.fixture
def fake_driver():
    """Fresh fake driver registered under the name 'fake_ifx'."""
    driver = FakeNativeDriver()
    register_native_driver('fake_ifx', driver)
    yield driver
    unregister_native_driver('fake_ifx')
