"""User supplied queries from a YAML file.

The file maps a metric namespace to a query and its column usages::

    mysql_performance_schema:
      query: "SELECT event_name, count_star FROM ..."
      metrics:
        - event_name:
            usage: "LABEL"
            description: "Performance Schema Event Name"
        - count_star:
            usage: "COUNTER"
            description: "Number of events"

Metrics are named ``<namespace>_<column>`` (DURATION columns get a
``_milliseconds`` suffix). The file is re-read on every scrape.
"""
import logging
import os

import pymysql
import yaml

from ..args import STRING, ArgDef, Configurable
from ..decoders import USAGES, Column, FixedSchemaDecoder
from ..errors import ScrapeError
from ..registry import Scraper


def load_queries(text):
    """Parse the YAML document into {namespace: (query, [Column, ...])}."""
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ScrapeError(f"failed to parse custom queries: {e}") from e
    if not isinstance(data, dict):
        raise ScrapeError(f"incorrect yaml format for {data!r}")

    queries = {}
    for namespace, definition in data.items():
        if not isinstance(definition, dict):
            raise ScrapeError(f"incorrect yaml format for {definition!r}")
        query = definition.get('query')
        if not isinstance(query, str) or not query.strip():
            raise ScrapeError(f"namespace {namespace} has no query")
        columns = []
        for entry in definition.get('metrics') or ():
            if not isinstance(entry, dict):
                raise ScrapeError(f"incorrect yaml format for {entry!r}")
            for name, attrs in entry.items():
                attrs = attrs or {}
                usage = str(attrs.get('usage', '')).upper()
                if usage not in USAGES:
                    raise ScrapeError(f"wrong ColumnUsage given : {attrs.get('usage')}")
                mapping = attrs.get('metric_mapping')
                columns.append(Column(
                    str(name), usage, attrs.get('description', ''),
                    mapping={str(k): float(v) for k, v in mapping.items()} if mapping else None,
                ))
        queries[str(namespace)] = (query, columns)
    return queries


def run_queries(ctx, db, sink, queries):
    """Run each namespace's query; failures are collected into one ScrapeError."""
    failed = []
    for namespace, (query, columns) in sorted(queries.items()):
        try:
            rows = db.query(query)
        except pymysql.MySQLError as e:
            logging.error(f"Custom query {namespace} failed on {ctx.target}: {e}")
            failed.append(f"{namespace}:{e}")
            continue
        FixedSchemaDecoder(namespace, columns).decode(rows, sink)
    if failed:
        raise ScrapeError(":".join(failed))


class CustomQuery(Configurable, Scraper):
    name = 'custom_query'
    help = 'Collect the metrics from custom queries.'
    min_version = 5.1
    arg_defs = (
        ArgDef('file', STRING, '', 'Path to custom queries file.'),
    )

    def scrape(self, ctx, db, sink):
        path = self.arg('file')
        if not path:
            raise ScrapeError("custom queries file is not set")
        try:
            with open(path, 'r') as f:
                text = f.read()
        except OSError as e:
            raise ScrapeError(f"failed to open custom queries: {e}") from e
        run_queries(ctx, db, sink, load_queries(text))


CUSTOM_QUERIES_ROOT = '/usr/local/percona/pmm-client/custom-queries/mysql'
QUERY_FILE_SUFFIXES = ('.yml', '.yaml')


def load_directory(path):
    """Merge the queries of every YAML file in path, read in file name order."""
    try:
        names = sorted(os.listdir(path))
    except OSError as e:
        raise ScrapeError(f"failed read dir {path!r} for custom query. reason: {e}") from e
    queries = {}
    for name in names:
        if not name.endswith(QUERY_FILE_SUFFIXES):
            continue
        file_path = os.path.join(path, name)
        try:
            with open(file_path, 'r') as f:
                text = f.read()
        except OSError as e:
            raise ScrapeError(f"failed to open custom queries: {e}") from e
        logging.debug(f"Loading custom queries from {file_path}")
        queries.update(load_queries(text))
    return queries


class CustomQueryResolution(Configurable, Scraper):
    """Custom queries from every YAML file of a directory, scraped at one resolution.

    Prometheus scrapes each resolution with its own interval by passing
    ``collect[]=custom_query.hr`` (or mr, lr).
    """
    resolution = None
    min_version = 5.1

    def scrape(self, ctx, db, sink):
        run_queries(ctx, db, sink, load_directory(self.arg('directory')))


def directory_arg(title, folder):
    return ArgDef('directory', STRING, f"{CUSTOM_QUERIES_ROOT}/{folder}",
                  f"Path to custom queries with {title} resolution directory.")


class CustomQueryHR(CustomQueryResolution):
    name = 'custom_query.hr'
    help = 'Collect the metrics from custom queries in high resolution.'
    resolution = 'hr'
    arg_defs = (directory_arg('high', 'high-resolution'),)


class CustomQueryMR(CustomQueryResolution):
    name = 'custom_query.mr'
    help = 'Collect the metrics from custom queries in medium resolution.'
    resolution = 'mr'
    arg_defs = (directory_arg('medium', 'medium-resolution'),)


class CustomQueryLR(CustomQueryResolution):
    name = 'custom_query.lr'
    help = 'Collect the metrics from custom queries in low resolution.'
    resolution = 'lr'
    arg_defs = (directory_arg('low', 'low-resolution'),)


RESOLUTION_SCRAPERS = (CustomQueryHR, CustomQueryMR, CustomQueryLR)
