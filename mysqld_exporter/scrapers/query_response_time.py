"""Percona query response time distribution."""
import logging

import pymysql

from ..decoders import assemble_histogram, parse_status
from ..metrics import HISTOGRAM, new_desc
from ..registry import Scraper

SUBSYSTEM = 'info_schema'

QUERY_RESPONSE_CHECK_QUERY = "SELECT @@query_response_time_stats"

# (query, descriptor); only the first table is required to exist.
QUERY_RESPONSE_TIME_TABLES = (
    ("SELECT TIME, COUNT, TOTAL FROM INFORMATION_SCHEMA.QUERY_RESPONSE_TIME",
     new_desc(SUBSYSTEM, 'query_response_time_seconds',
              'The number of all queries by duration they took to execute.', (), HISTOGRAM)),
    ("SELECT TIME, COUNT, TOTAL FROM INFORMATION_SCHEMA.QUERY_RESPONSE_TIME_READ",
     new_desc(SUBSYSTEM, 'read_query_response_time_seconds',
              'The number of read queries by duration they took to execute.', (), HISTOGRAM)),
    ("SELECT TIME, COUNT, TOTAL FROM INFORMATION_SCHEMA.QUERY_RESPONSE_TIME_WRITE",
     new_desc(SUBSYSTEM, 'write_query_response_time_seconds',
              'The number of write queries by duration they took to execute.', (), HISTOGRAM)),
)


def emit_histogram(rows, desc, sink):
    buckets, count, total = assemble_histogram(rows)
    sink.emit_histogram(desc, buckets, count, total)


class QueryResponseTime(Scraper):
    name = 'info_schema.query_response_time'
    help = 'Collect query response time distribution if query_response_time_stats is ON.'
    min_version = 5.5
    default_enabled = True

    def scrape(self, ctx, db, sink):
        try:
            row = db.query_row(QUERY_RESPONSE_CHECK_QUERY)
        except pymysql.MySQLError as e:
            logging.debug(f"Query response time distribution is not available on {ctx.target}: {e}")
            return
        if not row or not parse_status(row[0]):
            logging.debug(f"query_response_time_stats is OFF on {ctx.target}")
            return

        for i, (query, desc) in enumerate(QUERY_RESPONSE_TIME_TABLES):
            try:
                rows = db.query(query)
            except pymysql.MySQLError as e:
                # The read/write tables only exist on some Percona Server versions.
                if i == 0:
                    raise
                logging.debug(f"Skipping {desc.fq_name}: {e}")
                continue
            emit_histogram(rows, desc, sink)
