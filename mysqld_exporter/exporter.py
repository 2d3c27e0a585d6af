"""Per-request scrape orchestration."""
import logging
import re
import time
import traceback
from concurrent.futures import ThreadPoolExecutor, TimeoutError, as_completed
from dataclasses import dataclass, field
from threading import Lock

import pymysql

from .db import Deadline
from .errors import DeadlineExceeded, ExporterError
from .metrics import COUNTER, GAUGE, MetricSink, new_desc

VERSION_QUERY = "SELECT @@version"
VERSION_COMMENT_QUERY = "SELECT @@version_comment"
INNODB_VERSION_QUERY = "SELECT @@innodb_version"
LOG_SLOW_FILTER = "tmp_table_on_disk,filesort_on_disk"

# Unknown versions enable every scraper.
UNKNOWN_VERSION = 999.0
_VERSION_RE = re.compile(r'^\d+\.\d+')

CONNECTION = 'connection'

UP = new_desc('', 'up', 'Whether the MySQL server is up.', ['target'], GAUGE)
SCRAPES = new_desc('exporter', 'scrapes_total', 'Total number of times MySQL was scraped for metrics.',
                   (), COUNTER)
SCRAPE_ERRORS = new_desc('exporter', 'scrape_errors_total',
                         'Total number of times an error occurred scraping a MySQL.', ['collector'], COUNTER)
SCRAPE_DURATION = new_desc('exporter', 'scrape_duration_seconds',
                           'Time the collector took to scrape, in seconds.', ['collector'], GAUGE)
LAST_SCRAPE_ERROR = new_desc('exporter', 'last_scrape_error',
                             'Whether the last scrape of metrics from MySQL resulted in an error (1 for error, 0 for success).',
                             (), GAUGE)
VERSION_INFO = new_desc('version', 'info', "MySQL version and distribution.",
                        ['innodb_version', 'version', 'version_comment'], GAUGE)


def parse_version(text):
    """Leading X.Y of a server version string as a float; 999 when unparseable."""
    match = _VERSION_RE.match((text or '').strip())
    if not match:
        return UNKNOWN_VERSION
    version = float(match.group(0))
    return version or UNKNOWN_VERSION


def session_statements(lock_wait_timeout=2, log_slow_filter=False):
    statements = []
    if lock_wait_timeout and lock_wait_timeout > 0:
        statements.append(f"SET SESSION lock_wait_timeout={int(lock_wait_timeout)}")
    if log_slow_filter:
        statements.append(f"SET SESSION log_slow_filter='{LOG_SLOW_FILTER}'")
    return statements


@dataclass
class ScrapeContext:
    deadline: Deadline
    dsn: object
    logger: logging.Logger
    target: str = ''
    filter_set: frozenset = None
    engine_metrics_sink: MetricSink = None
    server_version: float = 0.0
    version_string: str = ''
    flavor: str = 'mysql'
    extras: dict = field(default_factory=dict)


class EngineMetrics:
    """Exporter self-metrics, cumulative across the scrapes of one endpoint."""

    def __init__(self):
        self._lock = Lock()
        self.scrapes_total = 0
        self.errors_total = {}
        self.last_scrape_error = 0

    def begin(self):
        with self._lock:
            self.scrapes_total += 1

    def record(self, collector, failed):
        with self._lock:
            self.errors_total[collector] = self.errors_total.get(collector, 0) + (1 if failed else 0)

    def finish(self, failed, sink):
        with self._lock:
            self.last_scrape_error = 1 if failed else 0
            sink.emit(SCRAPES, self.scrapes_total)
            for collector, count in sorted(self.errors_total.items()):
                sink.emit(SCRAPE_ERRORS, count, collector)
            sink.emit(LAST_SCRAPE_ERROR, self.last_scrape_error)


class Exporter:
    """Runs one scrape of one target and fills the sinks.

    Nothing raised while connecting or scraping reaches the caller; failures
    become ``mysql_up``, ``scrape_errors_total`` and ``last_scrape_error``.
    """

    def __init__(self, dsn, scrapers, connections, engine_metrics, timeout=None, target='',
                 filter_set=None):
        self.dsn = dsn
        self.connections = connections
        self.engine_metrics = engine_metrics
        self.timeout = timeout
        self.target = target or dsn.address
        self.filter_set = frozenset(filter_set) if filter_set else None
        if self.filter_set is not None:
            scrapers = [s for s in scrapers if s.name in self.filter_set]
        self.scrapers = list(scrapers)

    def scrape(self, sink, engine_sink):
        """Scrape into sink; engine metrics go to engine_sink. Returns True when up."""
        start = time.monotonic()
        deadline = Deadline(self.timeout)
        self.engine_metrics.begin()
        ctx = ScrapeContext(
            deadline=deadline, dsn=self.dsn, logger=logging.getLogger(__name__),
            target=self.target, filter_set=self.filter_set, engine_metrics_sink=engine_sink,
        )
        failed = False
        db = None
        try:
            try:
                db = self.connections.open(self.dsn, deadline)
                db.ping()
            except (pymysql.MySQLError, OSError, ExporterError) as e:
                logging.error(f"Error pinging mysqld at {self.target}: {e}")
                engine_sink.emit(UP, 0, self.target)
                engine_sink.emit(SCRAPE_DURATION, time.monotonic() - start, CONNECTION)
                failed = True
                return False
            engine_sink.emit(UP, 1, self.target)
            engine_sink.emit(SCRAPE_DURATION, time.monotonic() - start, CONNECTION)

            self._detect_version(ctx, db, engine_sink)
            failed = self._run_scrapers(ctx, db, sink, engine_sink)
            return True
        finally:
            sink.close()
            if db is not None:
                db.close()
            self.engine_metrics.finish(failed, engine_sink)
            logging.info(f"Scrape of {self.target} completed in {time.monotonic() - start:.3f} seconds")

    def _detect_version(self, ctx, db, engine_sink):
        try:
            row = db.query_row(VERSION_QUERY)
            ctx.version_string = str(row[0]) if row else ''
        except (pymysql.MySQLError, OSError, ExporterError) as e:
            logging.warning(f"Error querying version on {self.target}: {e}")
        ctx.server_version = parse_version(ctx.version_string)
        if 'mariadb' in ctx.version_string.lower():
            ctx.flavor = 'mariadb'

        comment = innodb = ''
        try:
            row = db.query_row(VERSION_COMMENT_QUERY)
            comment = str(row[0]) if row and row[0] is not None else ''
            row = db.query_row(INNODB_VERSION_QUERY)
            innodb = str(row[0]) if row and row[0] is not None else ''
        except (pymysql.MySQLError, OSError, ExporterError) as e:
            logging.debug(f"Error querying version details on {self.target}: {e}")
        if ctx.version_string:
            engine_sink.emit(VERSION_INFO, 1, innodb, ctx.version_string, comment)
        logging.debug(f"Server {self.target} version {ctx.version_string!r} -> {ctx.server_version}")

    def _run_scrapers(self, ctx, db, sink, engine_sink):
        runnable = []
        for scraper in self.scrapers:
            if scraper.min_version > ctx.server_version:
                logging.debug(f"Skipping {scraper.name}: needs {scraper.min_version}, server is {ctx.server_version}")
                continue
            runnable.append(scraper)
        if not runnable:
            return False

        failed = False
        executor = ThreadPoolExecutor(max_workers=len(runnable), thread_name_prefix='scrape')
        future_to_scraper = {
            executor.submit(self._scrape_one, scraper, ctx, db, sink): scraper for scraper in runnable
        }
        pending = set(future_to_scraper)
        try:
            for future in as_completed(future_to_scraper, timeout=ctx.deadline.remaining()):
                pending.discard(future)
                failed |= self._record(future_to_scraper[future], future.result(), engine_sink)
        except TimeoutError:
            logging.error(f"Scrape of {self.target} exceeded its deadline; cancelling {len(pending)} scrapers")
            sink.close()
            db.cancel()
            for future in pending:
                scraper = future_to_scraper[future]
                if future.done():
                    failed |= self._record(scraper, future.result(), engine_sink)
                else:
                    elapsed = time.monotonic() - ctx.extras.get(scraper.name, time.monotonic())
                    logging.error(f"Error from scraper {scraper.name} ({self.target}): deadline exceeded")
                    failed |= self._record(scraper, (elapsed, DeadlineExceeded('deadline exceeded')), engine_sink)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return failed

    def _scrape_one(self, scraper, ctx, db, sink):
        start = time.monotonic()
        ctx.extras[scraper.name] = start
        try:
            scraper.scrape(ctx, db, sink)
        except Exception as e:
            if isinstance(e, DeadlineExceeded):
                logging.error(f"Error from scraper {scraper.name} ({self.target}): {e}")
            else:
                logging.error(f"Error from scraper {scraper.name} ({self.target}): {e}\n{traceback.format_exc()}")
            return time.monotonic() - start, e
        return time.monotonic() - start, None

    def _record(self, scraper, outcome, engine_sink):
        elapsed, error = outcome
        engine_sink.emit(SCRAPE_DURATION, elapsed, scraper.name)
        self.engine_metrics.record(scraper.name, error is not None)
        return error is not None
