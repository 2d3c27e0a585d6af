import itertools
import logging
import re

import pymysql
import pytest

from mysqld_exporter.db import Deadline, Rows
from mysqld_exporter.dsn import DSN
from mysqld_exporter.exporter import ScrapeContext
from mysqld_exporter.metrics import MetricSink


class FakeDB:
    """Stands in for mysqld_exporter.db.Database, replaying canned results by SQL regex."""

    def __init__(self):
        self.responses = []
        self.queries = []
        self.ping_error = None
        self.cancelled = False
        self.closed = False
        self.deadline = Deadline()

    def add(self, pattern, columns=(), rows=(), error=None):
        result = error if error is not None else Rows(tuple(columns), tuple(tuple(r) for r in rows))
        self.responses.append((re.compile(pattern, re.IGNORECASE | re.DOTALL), result))
        return self

    def query(self, sql, args=None):
        self.queries.append((sql, args))
        for pattern, result in self.responses:
            if pattern.search(sql):
                if isinstance(result, BaseException):
                    raise result
                return result
        raise pymysql.err.ProgrammingError(1146, f"no canned result for {sql.strip()[:60]}")

    def query_row(self, sql, args=None):
        return self.query(sql, args).first()

    def ping(self):
        if self.ping_error is not None:
            raise self.ping_error

    def cancel(self):
        self.cancelled = True
        self.deadline.cancel()

    def close(self):
        self.closed = True


class FakeConnections:
    """Stands in for ConnectionManager."""

    def __init__(self, db=None, error=None):
        self.db = db if db is not None else FakeDB()
        self.error = error
        self.opened = []

    def open(self, dsn, deadline):
        self.opened.append(dsn)
        if self.error is not None:
            raise self.error
        self.db.deadline = deadline
        return self.db

    def close(self):
        pass


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.description = None
        self._rows = ()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, args=None):
        self.conn.executed.append(sql)
        if self.conn.fail:
            raise pymysql.err.OperationalError(2013, 'Lost connection to MySQL server during query')
        self.description = (('value',),)
        self._rows = ((1,),)

    def fetchall(self):
        return self._rows


class FakeConnection:
    """Stands in for a pymysql connection."""

    _ids = itertools.count(100)

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.executed = []
        self.fail = False
        self.closed = False
        self._thread_id = next(self._ids)

    def cursor(self):
        return FakeCursor(self)

    def thread_id(self):
        return self._thread_id

    def close(self):
        self.closed = True


def samples(sink, name):
    """{label values: value} of the samples of the metric called name."""
    return {s.label_values: s.value for s in sink.samples() if s.desc.fq_name == name}


def value(sink, name, *labels):
    return samples(sink, name)[tuple(labels)]


@pytest.fixture
def db():
    return FakeDB()


@pytest.fixture
def sink():
    return MetricSink()


@pytest.fixture
def ctx():
    return ScrapeContext(
        deadline=Deadline(),
        dsn=DSN('root', 'secret'),
        logger=logging.getLogger('tests'),
        target='localhost:3306',
        server_version=8.0,
    )


@pytest.fixture
def fake_connect(monkeypatch):
    """Patch pymysql.connect; returns the list of connections handed out."""
    created = []

    def connect(**kwargs):
        conn = FakeConnection(**kwargs)
        created.append(conn)
        return conn

    monkeypatch.setattr('mysqld_exporter.db.pymysql.connect', connect)
    return created
