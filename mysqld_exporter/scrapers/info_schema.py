"""Scrapers reading information_schema tables."""
import logging
import re
from collections import defaultdict

from ..args import BOOL, INT, STRING, ArgDef, Configurable
from ..decoders import (
    COUNTER_USAGE,
    LABEL,
    Column,
    FixedSchemaDecoder,
    WideColumn,
    WideRowDecoder,
    parse_status,
    to_text,
)
from ..errors import ScrapeError
from ..metrics import COUNTER, GAUGE, NAMESPACE, build_fq_name, new_desc
from ..registry import Scraper

SUBSYSTEM = 'info_schema'


# innodb_cmp / innodb_cmpmem

INNODB_CMP_QUERY = """
    SELECT
      page_size, compress_ops, compress_ops_ok, compress_time, uncompress_ops, uncompress_time
      FROM information_schema.innodb_cmp
"""

INNODB_CMP_DECODER = FixedSchemaDecoder(build_fq_name(NAMESPACE, SUBSYSTEM, 'innodb_cmp'), (
    Column('page_size', LABEL),
    Column('compress_ops', COUNTER_USAGE,
           'Number of times a B-tree page of the size PAGE_SIZE has been compressed.'),
    Column('compress_ops_ok', COUNTER_USAGE,
           'Number of times a B-tree page of the size PAGE_SIZE has been successfully compressed.'),
    Column('compress_time', COUNTER_USAGE,
           'Total time in seconds spent in attempts to compress B-tree pages.',
           metric='compress_time_seconds_total'),
    Column('uncompress_ops', COUNTER_USAGE,
           'Number of times a B-tree page of the size PAGE_SIZE has been uncompressed.'),
    Column('uncompress_time', COUNTER_USAGE,
           'Total time in seconds spent in uncompressing B-tree pages.',
           metric='uncompress_time_seconds_total'),
))

INNODB_CMPMEM_QUERY = """
    SELECT
      page_size, buffer_pool_instance AS buffer_pool, pages_used, pages_free, relocation_ops, relocation_time
      FROM information_schema.innodb_cmpmem
"""

INNODB_CMPMEM_DECODER = FixedSchemaDecoder(build_fq_name(NAMESPACE, SUBSYSTEM, 'innodb_cmpmem'), (
    Column('page_size', LABEL),
    Column('buffer_pool', LABEL),
    Column('pages_used', COUNTER_USAGE, 'Number of blocks of the size PAGE_SIZE that are currently in use.'),
    Column('pages_free', COUNTER_USAGE,
           'Number of blocks of the size PAGE_SIZE that are currently available for allocation.'),
    Column('relocation_ops', COUNTER_USAGE, 'Number of times a block of the size PAGE_SIZE has been relocated.'),
    Column('relocation_time', COUNTER_USAGE, 'Total time in seconds spent in relocating blocks.',
           metric='relocation_time_seconds_total', divisor=1000.0),
))


class InnodbCmp(Scraper):
    name = 'info_schema.innodb_cmp'
    help = 'Collect metrics from information_schema.innodb_cmp'
    min_version = 5.5
    default_enabled = True

    def scrape(self, ctx, db, sink):
        INNODB_CMP_DECODER.decode(db.query(INNODB_CMP_QUERY), sink)


class InnodbCmpMem(Scraper):
    name = 'info_schema.innodb_cmpmem'
    help = 'Collect metrics from information_schema.innodb_cmpmem'
    min_version = 5.5
    default_enabled = True

    def scrape(self, ctx, db, sink):
        INNODB_CMPMEM_DECODER.decode(db.query(INNODB_CMPMEM_QUERY), sink)


# processlist

PROCESSLIST_QUERY = """
    SELECT
      user,
      SUBSTRING_INDEX(host, ':', 1) AS host,
      COALESCE(command, '') AS command,
      COALESCE(state, '') AS state,
      COUNT(*) AS processes,
      SUM(time) AS seconds
    FROM information_schema.processlist
    WHERE ID != connection_id()
      AND TIME >= %s
    GROUP BY user, SUBSTRING_INDEX(host, ':', 1), command, state
"""

PROCESSLIST_THREADS = new_desc(SUBSYSTEM, 'processlist_threads',
                               'The number of threads split by current state.', ['command', 'state'], GAUGE)
PROCESSLIST_SECONDS = new_desc(SUBSYSTEM, 'processlist_seconds',
                               'The number of seconds threads have used split by current state.',
                               ['command', 'state'], GAUGE)
PROCESSES_BY_USER = new_desc(SUBSYSTEM, 'processlist_processes_by_user',
                             'The number of processes by user.', ['mysql_user'], GAUGE)
PROCESSES_BY_HOST = new_desc(SUBSYSTEM, 'processlist_processes_by_host',
                             'The number of processes by host.', ['client_host'], GAUGE)

_STATE_DROP = re.compile(r'[;,:.()]')


def sanitize_state(state):
    if not state:
        return 'unknown'
    state = _STATE_DROP.sub('', state.lower())
    return state.replace(' ', '_').replace('-', '_')


class Processlist(Configurable, Scraper):
    name = 'info_schema.processlist'
    help = 'Collect current thread state counts from the information_schema.processlist'
    arg_defs = (
        ArgDef('min_time', INT, 0, 'Minimum time a thread must be in each state to be counted'),
        ArgDef('processes_by_user', BOOL, True, 'Enable collecting the number of processes by user'),
        ArgDef('processes_by_host', BOOL, True, 'Enable collecting the number of processes by host'),
    )

    def scrape(self, ctx, db, sink):
        rows = db.query(PROCESSLIST_QUERY, (self.arg('min_time'),))
        state_counts = defaultdict(float)
        state_seconds = defaultdict(float)
        user_counts = defaultdict(float)
        host_counts = defaultdict(float)
        for user, host, command, state, processes, seconds in rows:
            key = (sanitize_state(to_text(command)), sanitize_state(to_text(state)))
            count = parse_status(processes) or 0.0
            state_counts[key] += count
            state_seconds[key] += parse_status(seconds) or 0.0
            user_counts[to_text(user)] += count
            host_counts[to_text(host) or 'unknown'] += count

        for (command, state), count in state_counts.items():
            sink.emit(PROCESSLIST_THREADS, count, command, state)
            sink.emit(PROCESSLIST_SECONDS, state_seconds[(command, state)], command, state)
        if self.arg('processes_by_user'):
            for user, count in user_counts.items():
                sink.emit(PROCESSES_BY_USER, count, user)
        if self.arg('processes_by_host'):
            for host, count in host_counts.items():
                sink.emit(PROCESSES_BY_HOST, count, host)


# innodb_metrics

INNODB_METRICS_QUERY = """
    SELECT
      name, subsystem, type, comment,
      count
      FROM information_schema.innodb_metrics
      WHERE status = 'enabled'
"""

BUFFER_PAGE_READ = new_desc(SUBSYSTEM, 'innodb_metrics_buffer_page_read_total',
                            'Total number of buffer pages read total.', ['type'], COUNTER)
BUFFER_PAGE_WRITTEN = new_desc(SUBSYSTEM, 'innodb_metrics_buffer_page_written_total',
                               'Total number of buffer pages written total.', ['type'], COUNTER)
BUFFER_POOL_PAGES = new_desc(SUBSYSTEM, 'innodb_metrics_buffer_pool_pages',
                             'Total number of buffer pool pages by state.', ['state'], GAUGE)
BUFFER_POOL_DIRTY_PAGES = new_desc(SUBSYSTEM, 'innodb_metrics_buffer_pool_dirty_pages',
                                   'Total number of dirty pages in the buffer pool.', (), GAUGE)

_BUFFER_PAGE_IO_RE = re.compile(r'^buffer_page_(read|written)_(.*)$')
_BUFFER_POOL_PAGES_RE = re.compile(r'^buffer_pool_pages_(.*)$')


class InnodbMetrics(Scraper):
    name = 'info_schema.innodb_metrics'
    help = 'Collect metrics from information_schema.innodb_metrics'
    min_version = 5.6

    def scrape(self, ctx, db, sink):
        for name, subsystem, metric_type, comment, count in db.query(INNODB_METRICS_QUERY):
            name, subsystem, metric_type = to_text(name), to_text(subsystem), to_text(metric_type)
            value = parse_status(count)
            if value is None:
                continue
            if subsystem == 'buffer_page_io':
                match = _BUFFER_PAGE_IO_RE.match(name)
                if not match:
                    logging.debug(f"innodb_metrics subsystem buffer_page_io returned an invalid name: {name}")
                    continue
                desc = BUFFER_PAGE_READ if match.group(1) == 'read' else BUFFER_PAGE_WRITTEN
                sink.emit(desc, value, match.group(2))
                continue
            if subsystem == 'buffer' and name.startswith('buffer_pool_pages'):
                match = _BUFFER_POOL_PAGES_RE.match(name)
                if not match:
                    continue
                state = match.group(1)
                if state == 'total':
                    continue
                if state == 'dirty':
                    sink.emit(BUFFER_POOL_DIRTY_PAGES, value)
                else:
                    sink.emit(BUFFER_POOL_PAGES, value, state)
                continue

            if metric_type in ('counter', 'status_counter'):
                if value < 0:
                    continue
                desc = new_desc(SUBSYSTEM, f"innodb_metrics_{subsystem}_{name}", to_text(comment), (), COUNTER)
            else:
                desc = new_desc(SUBSYSTEM, f"innodb_metrics_{subsystem}_{name}", to_text(comment), (), GAUGE)
            sink.emit(desc, value)


# user_statistics / client_statistics / table_statistics (userstat=1)

USERSTAT_CHECK_QUERY = "SHOW GLOBAL VARIABLES WHERE Variable_Name='userstat' OR Variable_Name='userstat_running'"
USER_STAT_QUERY = "SELECT * FROM information_schema.user_statistics"
CLIENT_STAT_QUERY = "SELECT * FROM information_schema.client_statistics"

# (column, metric suffix, help with {} for the entity, type)
_STATISTICS = (
    ('TOTAL_CONNECTIONS', 'total_connections', 'The number of connections created for this {}.', COUNTER),
    ('CONCURRENT_CONNECTIONS', 'concurrent_connections', 'The number of concurrent connections for this {}.', GAUGE),
    ('CONNECTED_TIME', 'connected_time_seconds_total',
     'The cumulative number of seconds elapsed while there were connections from this {}.', COUNTER),
    ('BUSY_TIME', 'busy_seconds_total',
     'The cumulative number of seconds there was activity on connections from this {}.', COUNTER),
    ('CPU_TIME', 'cpu_time_seconds_total',
     "The cumulative CPU time elapsed, in seconds, while servicing this {}'s connections.", COUNTER),
    ('BYTES_RECEIVED', 'bytes_received_total', "The number of bytes received from this {}'s connections.", COUNTER),
    ('BYTES_SENT', 'bytes_sent_total', "The number of bytes sent to this {}'s connections.", COUNTER),
    ('BINLOG_BYTES_WRITTEN', 'binlog_bytes_written_total',
     "The number of bytes written to the binary log from this {}'s connections.", COUNTER),
    ('ROWS_READ', 'rows_read_total', "The number of rows read by this {}'s connections.", COUNTER),
    ('ROWS_SENT', 'rows_sent_total', "The number of rows sent by this {}'s connections.", COUNTER),
    ('ROWS_DELETED', 'rows_deleted_total', "The number of rows deleted by this {}'s connections.", COUNTER),
    ('ROWS_INSERTED', 'rows_inserted_total', "The number of rows inserted by this {}'s connections.", COUNTER),
    ('ROWS_FETCHED', 'rows_fetched_total', "The number of rows fetched by this {}'s connections.", COUNTER),
    ('ROWS_UPDATED', 'rows_updated_total', "The number of rows updated by this {}'s connections.", COUNTER),
    ('TABLE_ROWS_READ', 'table_rows_read_total',
     "The number of rows read from tables by this {}'s connections.", COUNTER),
    ('SELECT_COMMANDS', 'select_commands_total',
     "The number of SELECT commands executed from this {}'s connections.", COUNTER),
    ('UPDATE_COMMANDS', 'update_commands_total',
     "The number of UPDATE commands executed from this {}'s connections.", COUNTER),
    ('OTHER_COMMANDS', 'other_commands_total',
     "The number of other commands executed from this {}'s connections.", COUNTER),
    ('COMMIT_TRANSACTIONS', 'commit_transactions_total',
     "The number of COMMIT commands issued by this {}'s connections.", COUNTER),
    ('ROLLBACK_TRANSACTIONS', 'rollback_transactions_total',
     "The number of ROLLBACK commands issued by this {}'s connections.", COUNTER),
    ('DENIED_CONNECTIONS', 'denied_connections_total', 'The number of connections denied to this {}.', COUNTER),
    ('LOST_CONNECTIONS', 'lost_connections_total',
     "The number of this {}'s connections that were terminated uncleanly.", COUNTER),
    ('ACCESS_DENIED', 'access_denied_total',
     "The number of times this {}'s connections issued commands that were denied.", COUNTER),
    ('EMPTY_QUERIES', 'empty_queries_total',
     "The number of times this {}'s connections sent empty queries to the server.", COUNTER),
    ('TOTAL_SSL_CONNECTIONS', 'total_ssl_connections_total',
     "The number of times this {}'s connections connected using SSL to the server.", COUNTER),
    ('MAX_STATEMENT_TIME_EXCEEDED', 'max_statement_time_exceeded_total',
     'The number of times a statement was aborted, because it was executed longer than '
     'its MAX_STATEMENT_TIME threshold.', COUNTER),
)


def statistics_decoder(entity):
    """Decoder for user_statistics or client_statistics; the first column names the entity."""
    columns = {
        column: WideColumn(new_desc(SUBSYSTEM, f"{entity}_statistics_{name}", help_text.format(entity),
                                    [entity], metric_type))
        for column, name, help_text, metric_type in _STATISTICS
    }
    return WideRowDecoder([entity], columns, unknown=(SUBSYSTEM, f"{entity}_statistics_"))


USER_STAT_DECODER = statistics_decoder('user')
CLIENT_STAT_DECODER = statistics_decoder('client')


def userstat_enabled(db):
    """False when the userstat variables exist and are OFF."""
    for name, value in db.query(USERSTAT_CHECK_QUERY):
        if to_text(value).upper() == 'OFF':
            logging.debug(f"{to_text(name)} is OFF")
            return False
    return True


class UserStats(Scraper):
    name = 'info_schema.userstats'
    help = 'If running with userstat=1, set to true to collect user statistics'

    def scrape(self, ctx, db, sink):
        if not userstat_enabled(db):
            return
        USER_STAT_DECODER.decode(db.query(USER_STAT_QUERY), sink)


class ClientStats(Scraper):
    name = 'info_schema.clientstats'
    help = 'If running with userstat=1, set to true to collect client statistics'

    def scrape(self, ctx, db, sink):
        if not userstat_enabled(db):
            return
        CLIENT_STAT_DECODER.decode(db.query(CLIENT_STAT_QUERY), sink)


TABLE_STAT_QUERY = """
    SELECT TABLE_SCHEMA, TABLE_NAME, ROWS_READ, ROWS_CHANGED, ROWS_CHANGED_X_INDEXES
      FROM information_schema.table_statistics
"""

SCHEMA_STAT_QUERY = """
    SELECT
        TABLE_SCHEMA,
        SUM(ROWS_READ) AS ROWS_READ,
        SUM(ROWS_CHANGED) AS ROWS_CHANGED,
        SUM(ROWS_CHANGED_X_INDEXES) AS ROWS_CHANGED_X_INDEXES
      FROM information_schema.TABLE_STATISTICS
      GROUP BY TABLE_SCHEMA
"""


def rows_columns(family, noun, label_names):
    def column(name, help_text):
        return WideColumn(new_desc(SUBSYSTEM, f"{family}_{name}", help_text, label_names, COUNTER))
    return {
        'ROWS_READ': column('rows_read_total', f"The number of rows read from the {noun}."),
        'ROWS_CHANGED': column('rows_changed_total', f"The number of rows changed in the {noun}."),
        'ROWS_CHANGED_X_INDEXES': column(
            'rows_changed_x_indexes_total',
            f"The number of rows changed in the {noun}, multiplied by the number of indexes changed."),
    }


TABLE_STAT_DECODER = WideRowDecoder(['schema', 'table'], rows_columns('table_statistics', 'table', ['schema', 'table']))
SCHEMA_STAT_DECODER = WideRowDecoder(['schema'], rows_columns('schema_statistics', 'schema', ['schema']))


class TableStats(Scraper):
    name = 'info_schema.tablestats'
    help = 'If running with userstat=1, set to true to collect table statistics'

    def scrape(self, ctx, db, sink):
        if not userstat_enabled(db):
            return
        TABLE_STAT_DECODER.decode(db.query(TABLE_STAT_QUERY), sink)


class SchemaStats(Scraper):
    name = 'info_schema.schemastats'
    help = 'If running with userstat=1, set to true to collect schema statistics'

    def scrape(self, ctx, db, sink):
        if not userstat_enabled(db):
            return
        SCHEMA_STAT_DECODER.decode(db.query(SCHEMA_STAT_QUERY), sink)


# tables

DATABASE_LIST_QUERY = """
    SELECT
      SCHEMA_NAME
      FROM information_schema.schemata
      WHERE SCHEMA_NAME NOT IN ('mysql', 'performance_schema', 'information_schema')
"""

TABLE_SCHEMA_QUERY = """
    SELECT
      TABLE_SCHEMA,
      TABLE_NAME,
      TABLE_TYPE,
      ifnull(ENGINE, 'NONE') as ENGINE,
      ifnull(VERSION, '0') as VERSION,
      ifnull(ROW_FORMAT, 'NONE') as ROW_FORMAT,
      ifnull(TABLE_ROWS, '0') as TABLE_ROWS,
      ifnull(DATA_LENGTH, '0') as DATA_LENGTH,
      ifnull(INDEX_LENGTH, '0') as INDEX_LENGTH,
      ifnull(DATA_FREE, '0') as DATA_FREE,
      ifnull(CREATE_OPTIONS, 'NONE') as CREATE_OPTIONS
      FROM information_schema.tables
      WHERE TABLE_SCHEMA = %s
"""

TABLE_VERSION = new_desc(SUBSYSTEM, 'table_version', "The version number of the table's .frm file",
                         ['schema', 'table', 'type', 'engine', 'row_format', 'create_options'], GAUGE)
TABLE_ROWS = new_desc(SUBSYSTEM, 'table_rows',
                      'The estimated number of rows in the table from information_schema.tables',
                      ['schema', 'table'], GAUGE)
TABLE_SIZE = new_desc(SUBSYSTEM, 'table_size', 'The size of the table components from information_schema.tables',
                      ['schema', 'table', 'component'], GAUGE)


class Tables(Configurable, Scraper):
    name = 'info_schema.tables'
    help = 'Collect metrics from information_schema.tables'
    min_version = 5.1
    arg_defs = (
        ArgDef('databases', STRING, '*', "The list of databases to collect table stats for, or '*' for all"),
    )

    def databases(self, db):
        databases = self.arg('databases')
        if databases == '*':
            return [to_text(row[0]) for row in db.query(DATABASE_LIST_QUERY)]
        return [name.strip() for name in databases.split(',') if name.strip()]

    def scrape(self, ctx, db, sink):
        for database in self.databases(db):
            for row in db.query(TABLE_SCHEMA_QUERY, (database,)):
                (schema, table, table_type, engine, version, row_format, table_rows,
                 data_length, index_length, data_free, create_options) = (
                    to_text(v) if i in (0, 1, 2, 3, 5, 10) else parse_status(v) or 0.0
                    for i, v in enumerate(row)
                )
                sink.emit(TABLE_VERSION, version, schema, table, table_type, engine, row_format, create_options)
                sink.emit(TABLE_ROWS, table_rows, schema, table)
                sink.emit(TABLE_SIZE, data_length, schema, table, 'data_length')
                sink.emit(TABLE_SIZE, index_length, schema, table, 'index_length')
                sink.emit(TABLE_SIZE, data_free, schema, table, 'data_free')



# innodb tablespaces

INNODB_TABLESPACES_TABLENAME_QUERY = """
    SELECT
      table_name
      FROM information_schema.tables
      WHERE table_name = 'INNODB_SYS_TABLESPACES'
        OR table_name = 'INNODB_TABLESPACES'
"""

INNODB_TABLESPACES_QUERY = """
    SELECT
      SPACE,
      NAME,
      ifnull((SELECT column_name
        FROM information_schema.COLUMNS
        WHERE TABLE_SCHEMA = 'information_schema'
          AND TABLE_NAME = '{table}'
          AND COLUMN_NAME = 'FILE_FORMAT' LIMIT 1), 'NONE') as FILE_FORMAT,
      ifnull(ROW_FORMAT, 'NONE') as ROW_FORMAT,
      ifnull(SPACE_TYPE, 'NONE') as SPACE_TYPE,
      FILE_SIZE,
      ALLOCATED_SIZE
      FROM information_schema.`{table}`
"""

# MySQL 8.0 renamed INNODB_SYS_TABLESPACES.
TABLESPACES_TABLES = ('INNODB_SYS_TABLESPACES', 'INNODB_TABLESPACES')

TABLESPACE_SPACE_INFO = new_desc(SUBSYSTEM, 'innodb_tablespace_space_info', 'The Tablespace information and Space ID.',
                                 ['tablespace_name', 'file_format', 'row_format', 'space_type'], GAUGE)
TABLESPACE_FILE_SIZE = new_desc(
    SUBSYSTEM, 'innodb_tablespace_file_size_bytes',
    'The apparent size of the file, which represents the maximum size of the file, uncompressed.',
    ['tablespace_name'], GAUGE)
TABLESPACE_ALLOCATED_SIZE = new_desc(
    SUBSYSTEM, 'innodb_tablespace_allocated_size_bytes',
    'The actual size of the file, which is the amount of space allocated on disk.',
    ['tablespace_name'], GAUGE)


class InnodbTablespaces(Scraper):
    name = 'info_schema.innodb_tablespaces'
    help = 'Collect metrics from information_schema.innodb_sys_tablespaces'
    min_version = 5.7

    def scrape(self, ctx, db, sink):
        row = db.query(INNODB_TABLESPACES_TABLENAME_QUERY).first()
        table = to_text(row[0]) if row else ''
        if table not in TABLESPACES_TABLES:
            raise ScrapeError("Couldn't find INNODB_SYS_TABLESPACES or INNODB_TABLESPACES in information_schema.")
        for space, name, file_format, row_format, space_type, file_size, allocated_size in db.query(
                INNODB_TABLESPACES_QUERY.format(table=table)):
            name = to_text(name)
            sink.emit(TABLESPACE_SPACE_INFO, parse_status(space) or 0.0,
                      name, to_text(file_format), to_text(row_format), to_text(space_type))
            sink.emit(TABLESPACE_FILE_SIZE, parse_status(file_size) or 0.0, name)
            sink.emit(TABLESPACE_ALLOCATED_SIZE, parse_status(allocated_size) or 0.0, name)


# innodb_trx

INNODB_TRX_QUERY = "SELECT count(1) FROM information_schema.INNODB_TRX WHERE trx_started < NOW() - INTERVAL %s MINUTE"

INNODB_TRX_RUNNING = new_desc(SUBSYSTEM, 'innodb_trx_running_transactions',
                              'Number of running transactions that have been running for more than the specified time.',
                              (), GAUGE)


class InnodbTrx(Configurable, Scraper):
    name = 'info_schema.innodb_trx'
    help = 'Number of running transactions that have been running for more than the specified time.'
    min_version = 5.7
    arg_defs = (
        ArgDef('running_time', INT, 0,
               'The running time in minutes for which to collect the number of running transactions.'),
    )

    def scrape(self, ctx, db, sink):
        row = db.query(INNODB_TRX_QUERY, (self.arg('running_time'),)).first()
        sink.emit(INNODB_TRX_RUNNING, (parse_status(row[0]) or 0.0) if row else 0.0)


# auto_increment

AUTO_INCREMENT_QUERY = """
    SELECT table_schema, table_name, column_name, auto_increment,
      pow(2, case data_type
        when 'tinyint'   then 7
        when 'smallint'  then 15
        when 'mediumint' then 23
        when 'int'       then 31
        when 'bigint'    then 63
        end+(column_type like '% unsigned'))-1 as max_int
      FROM information_schema.tables t
      JOIN information_schema.columns c USING (table_schema,table_name)
      WHERE c.extra = 'auto_increment' AND t.auto_increment IS NOT NULL
"""

AUTO_INCREMENT_COLUMN = new_desc(SUBSYSTEM, 'auto_increment_column',
                                 'The current value of an auto_increment column from information_schema.',
                                 ['schema', 'table', 'column'], GAUGE)
AUTO_INCREMENT_COLUMN_MAX = new_desc(SUBSYSTEM, 'auto_increment_column_max',
                                     'The max value of an auto_increment column from information_schema.',
                                     ['schema', 'table', 'column'], GAUGE)

AUTO_INCREMENT_DECODER = WideRowDecoder(['schema', 'table', 'column'], {
    'AUTO_INCREMENT': WideColumn(AUTO_INCREMENT_COLUMN),
    'MAX_INT': WideColumn(AUTO_INCREMENT_COLUMN_MAX),
})


class AutoIncrementColumns(Scraper):
    name = 'auto_increment.columns'
    help = 'Collect auto_increment columns and max values from information_schema'
    min_version = 5.1

    def scrape(self, ctx, db, sink):
        AUTO_INCREMENT_DECODER.decode(db.query(AUTO_INCREMENT_QUERY), sink)
