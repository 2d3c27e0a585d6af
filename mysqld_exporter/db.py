"""Database handles handed to scrapers.

A ``Database`` is one request's view of a ``ConnectionPool``. By default the
pool is private to the request and closed when the request ends; with
``--exporter.global-conn-pool`` one pool per DSN is shared across requests.
Either way, cancelling a request kills its in-flight statements and discards
the connections they ran on.
"""
import logging
import math
import queue
import time
import traceback
from dataclasses import dataclass
from threading import Event, Lock, Semaphore

import pymysql

from .errors import DeadlineExceeded

PING_QUERY = "SELECT 1"


class Deadline:
    """Request deadline plus an explicit cancellation flag."""

    def __init__(self, timeout=None):
        # Non-finite timeouts (inf, nan) mean no deadline.
        self.timeout = timeout if timeout and timeout > 0 and math.isfinite(timeout) else None
        self.expires_at = time.monotonic() + self.timeout if self.timeout else None
        self._cancelled = Event()

    def remaining(self):
        """Seconds left, or None when there is no deadline."""
        if self.expires_at is None:
            return None
        return max(self.expires_at - time.monotonic(), 0.0)

    @property
    def expired(self):
        return self.expires_at is not None and time.monotonic() >= self.expires_at

    @property
    def cancelled(self):
        return self._cancelled.is_set()

    def cancel(self):
        self._cancelled.set()

    def check(self):
        if self.cancelled:
            raise DeadlineExceeded("scrape cancelled")
        if self.expired:
            raise DeadlineExceeded(f"deadline of {self.timeout:.3f}s exceeded")


@dataclass(frozen=True)
class Rows:
    columns: tuple
    rows: tuple

    def __iter__(self):
        return iter(self.rows)

    def __len__(self):
        return len(self.rows)

    def first(self):
        return self.rows[0] if self.rows else None

    def as_dicts(self):
        return [dict(zip(self.columns, row)) for row in self.rows]


class PooledConnection:
    def __init__(self, conn):
        self.conn = conn
        self.created_at = time.time()

    def is_expired(self, max_lifetime):
        return max_lifetime > 0 and (time.time() - self.created_at) > max_lifetime

    @property
    def thread_id(self):
        return self.conn.thread_id()

    def close(self):
        try:
            self.conn.close()
        except pymysql.err.Error as e:
            logging.debug(f"Error closing connection: {e}")


def is_connection_alive(conn):
    """
    Checks if the connection is alive by running a lightweight query.
    Returns True if alive, False otherwise.
    """
    try:
        with conn.cursor() as cursor:
            cursor.execute(PING_QUERY)
            cursor.fetchall()
        return True
    except (pymysql.MySQLError, OSError) as e:
        logging.warning(f"Connection health check failed: {e}")
        return False


class ConnectionPool:
    """Up to max_open connections to one DSN, keeping at most max_idle of them."""

    def __init__(self, dsn, max_open=3, max_idle=3, max_lifetime=0, connect_timeout=5,
                 read_timeout=None, session_statements=()):
        self.dsn = dsn
        self.max_open = max(1, max_open)
        self.max_idle = max(0, max_idle)
        self.max_lifetime = max_lifetime
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.session_statements = tuple(session_statements)
        self._idle = queue.Queue()
        self._slots = Semaphore(self.max_open)
        self._closed = False

    def connect(self):
        kwargs = self.dsn.connect_kwargs(connect_timeout=self.connect_timeout, read_timeout=self.read_timeout)
        start_time = time.time()
        logging.debug(f"Connecting to {self.dsn.redacted()}")
        conn = pymysql.connect(**kwargs)
        logging.debug(f"Connected to {self.dsn.address} in {time.time() - start_time:.3f} seconds")
        self._apply_session(conn)
        return PooledConnection(conn)

    def _apply_session(self, conn):
        for statement in self.session_statements:
            try:
                with conn.cursor() as cursor:
                    cursor.execute(statement)
            except pymysql.MySQLError as e:
                logging.warning(f"Failed to apply session setting '{statement}': {e}")

    def acquire(self, deadline):
        if self._closed:
            raise pymysql.err.InterfaceError("connection pool is closed")
        if not self._slots.acquire(timeout=deadline.remaining()):
            raise DeadlineExceeded(f"no free connection to {self.dsn.address} before the deadline")
        try:
            while True:
                try:
                    candidate = self._idle.get_nowait()
                except queue.Empty:
                    return self.connect()
                if candidate.is_expired(self.max_lifetime) or not is_connection_alive(candidate.conn):
                    logging.info("Discarding pooled connection (expired or dead)")
                    candidate.close()
                    continue
                return candidate
        except BaseException:
            self._slots.release()
            raise

    def release(self, wrapper, discard=False):
        try:
            if discard or self._closed or self._idle.qsize() >= self.max_idle or wrapper.is_expired(self.max_lifetime):
                wrapper.close()
            else:
                self._idle.put(wrapper)
        finally:
            self._slots.release()

    def kill(self, thread_ids):
        """Abort the statements running on the given server threads."""
        if not thread_ids:
            return
        try:
            side = pymysql.connect(**self.dsn.connect_kwargs(connect_timeout=self.connect_timeout))
        except (pymysql.MySQLError, OSError) as e:
            logging.warning(f"Cannot open a connection to cancel queries on {self.dsn.address}: {e}")
            return
        try:
            with side.cursor() as cursor:
                for thread_id in thread_ids:
                    try:
                        cursor.execute(f"KILL QUERY {int(thread_id)}")
                        logging.info(f"Killed query on connection {thread_id}")
                    except pymysql.MySQLError as e:
                        logging.warning(f"Failed to kill query on connection {thread_id}: {e}")
        finally:
            side.close()

    def close(self):
        self._closed = True
        while True:
            try:
                self._idle.get_nowait().close()
            except queue.Empty:
                break

    @property
    def closed(self):
        return self._closed


class Database:
    """What scrapers query through: deadline checks, cancellation and row fetching."""

    def __init__(self, pool, deadline, owns_pool=True):
        self.pool = pool
        self.deadline = deadline
        self.owns_pool = owns_pool
        self._in_flight = {}
        self._lock = Lock()

    def query(self, sql, args=None):
        self.deadline.check()
        wrapper = self.pool.acquire(self.deadline)
        with self._lock:
            self._in_flight[id(wrapper)] = wrapper
        discard = False
        try:
            with wrapper.conn.cursor() as cursor:
                cursor.execute(sql, args)
                columns = tuple(d[0] for d in cursor.description or ())
                rows = tuple(tuple(row) for row in cursor.fetchall())
        except (pymysql.MySQLError, OSError) as e:
            discard = True
            if self.deadline.cancelled or self.deadline.expired:
                raise DeadlineExceeded(f"query cancelled: {e}") from e
            raise
        finally:
            with self._lock:
                self._in_flight.pop(id(wrapper), None)
            self.pool.release(wrapper, discard=discard or self.deadline.cancelled)
        return Rows(columns, rows)

    def query_row(self, sql, args=None):
        return self.query(sql, args).first()

    def ping(self):
        self.query(PING_QUERY)

    def cancel(self):
        """Cancel the request: no new statements, running ones are killed."""
        self.deadline.cancel()
        with self._lock:
            running = list(self._in_flight.values())
        thread_ids = []
        for wrapper in running:
            try:
                thread_ids.append(wrapper.thread_id)
            except pymysql.MySQLError as e:
                logging.debug(f"Cannot read connection thread id: {e}")
        self.pool.kill(thread_ids)

    def close(self):
        if self.owns_pool:
            self.pool.close()


class ConnectionManager:
    """Opens per-request handles, or hands out views of shared pools."""

    def __init__(self, global_pool=False, max_open=3, max_idle=3, max_lifetime=60.0,
                 connect_timeout=5, session_statements=()):
        self.global_pool = global_pool
        self.max_open = max_open
        self.max_idle = max_idle
        self.max_lifetime = max_lifetime
        self.connect_timeout = connect_timeout
        self.session_statements = tuple(session_statements)
        self._pools = {}
        self._lock = Lock()

    def open(self, dsn, deadline):
        if not self.global_pool:
            remaining = deadline.remaining()
            read_timeout = math.ceil(remaining) if remaining else None
            pool = ConnectionPool(
                dsn, self.max_open, self.max_idle, 0, self._connect_timeout(deadline),
                read_timeout, self.session_statements,
            )
            return Database(pool, deadline, owns_pool=True)

        key = str(dsn)
        with self._lock:
            pool = self._pools.get(key)
            if pool is None:
                pool = ConnectionPool(
                    dsn, self.max_open, self.max_idle, self.max_lifetime, self.connect_timeout,
                    None, self.session_statements,
                )
                self._pools[key] = pool
                logging.info(f"Created shared connection pool for {dsn.redacted()}")
        return Database(pool, deadline, owns_pool=False)

    def _connect_timeout(self, deadline):
        remaining = deadline.remaining()
        if remaining is None:
            return self.connect_timeout
        return max(1, min(self.connect_timeout, math.ceil(remaining)))

    def close(self):
        with self._lock:
            pools = list(self._pools.values())
            self._pools.clear()
        for pool in pools:
            try:
                pool.close()
            except Exception:
                logging.error(f"Error closing pool for {pool.dsn.address}:\n{traceback.format_exc()}")
