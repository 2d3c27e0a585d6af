"""Scrapers reading performance_schema summary tables."""
import re

from ..args import INT, STRING, ArgDef, Configurable
from ..db import Rows
from ..decoders import PICO_SECONDS, WideColumn, WideRowDecoder, parse_status, to_text
from ..metrics import COUNTER, GAUGE, new_desc
from ..registry import Scraper

SUBSYSTEM = 'perf_schema'

EVENTS_STATEMENTS_QUERY = """
    SELECT
        ifnull(SCHEMA_NAME, 'NONE') as SCHEMA_NAME,
        DIGEST,
        LEFT(DIGEST_TEXT, %d) as DIGEST_TEXT,
        COUNT_STAR,
        SUM_TIMER_WAIT,
        SUM_ERRORS,
        SUM_WARNINGS,
        SUM_ROWS_AFFECTED,
        SUM_ROWS_SENT,
        SUM_ROWS_EXAMINED,
        SUM_CREATED_TMP_DISK_TABLES,
        SUM_CREATED_TMP_TABLES,
        SUM_SORT_MERGE_PASSES,
        SUM_SORT_ROWS,
        SUM_NO_INDEX_USED
      FROM (
        SELECT *
        FROM performance_schema.events_statements_summary_by_digest
        WHERE SCHEMA_NAME NOT IN ('mysql', 'performance_schema', 'information_schema')
          AND LAST_SEEN > DATE_SUB(NOW(), INTERVAL %d SECOND)
        ORDER BY LAST_SEEN DESC
      )Q
      GROUP BY
        Q.SCHEMA_NAME,
        Q.DIGEST,
        Q.DIGEST_TEXT,
        Q.COUNT_STAR,
        Q.SUM_TIMER_WAIT,
        Q.SUM_ERRORS,
        Q.SUM_WARNINGS,
        Q.SUM_ROWS_AFFECTED,
        Q.SUM_ROWS_SENT,
        Q.SUM_ROWS_EXAMINED,
        Q.SUM_CREATED_TMP_DISK_TABLES,
        Q.SUM_CREATED_TMP_TABLES,
        Q.SUM_SORT_MERGE_PASSES,
        Q.SUM_SORT_ROWS,
        Q.SUM_NO_INDEX_USED
      ORDER BY SUM_TIMER_WAIT DESC
      LIMIT %d
"""

_STATEMENT_LABELS = ['schema', 'digest', 'digest_text']


def _statements(name, help_text, divisor=1.0):
    return WideColumn(new_desc(SUBSYSTEM, f"events_statements_{name}", help_text, _STATEMENT_LABELS, COUNTER),
                      divisor)


EVENTS_STATEMENTS_DECODER = WideRowDecoder(_STATEMENT_LABELS, {
    'COUNT_STAR': _statements('total', 'The total count of events statements by digest.'),
    'SUM_TIMER_WAIT': _statements('seconds_total', 'The total time of events statements by digest.', PICO_SECONDS),
    'SUM_ERRORS': _statements('errors_total', 'The errors of events statements by digest.'),
    'SUM_WARNINGS': _statements('warnings_total', 'The warnings of events statements by digest.'),
    'SUM_ROWS_AFFECTED': _statements('rows_affected_total',
                                     'The total rows affected of events statements by digest.'),
    'SUM_ROWS_SENT': _statements('rows_sent_total', 'The total rows sent of events statements by digest.'),
    'SUM_ROWS_EXAMINED': _statements('rows_examined_total',
                                     'The total rows examined of events statements by digest.'),
    'SUM_CREATED_TMP_DISK_TABLES': _statements('tmp_disk_tables_total',
                                               'The total tmp disk tables of events statements by digest.'),
    'SUM_CREATED_TMP_TABLES': _statements('tmp_tables_total',
                                          'The total tmp tables of events statements by digest.'),
    'SUM_SORT_MERGE_PASSES': _statements('sort_merge_passes_total',
                                         'The total number of merge passes by the sort algorithm performed by digest.'),
    'SUM_SORT_ROWS': _statements('sort_rows_total', 'The total number of sorted rows by digest.'),
    'SUM_NO_INDEX_USED': _statements('no_index_used_total',
                                     'The total number of statements that used full table scans by digest.'),
})


class EventsStatements(Configurable, Scraper):
    name = 'perf_schema.eventsstatements'
    help = 'Collect metrics from performance_schema.events_statements_summary_by_digest'
    min_version = 5.6
    arg_defs = (
        ArgDef('limit', INT, 250, 'Limit the number of events statements digests by response time'),
        ArgDef('timelimit', INT, 86400, "Limit how old the 'last_seen' events statements can be, in seconds"),
        ArgDef('digest_text_limit', INT, 120, 'Maximum length of the normalized statement text'),
    )

    def scrape(self, ctx, db, sink):
        query = EVENTS_STATEMENTS_QUERY % (
            self.arg('digest_text_limit'), self.arg('timelimit'), self.arg('limit'),
        )
        EVENTS_STATEMENTS_DECODER.decode(db.query(query), sink)


TABLE_IO_WAITS_QUERY = """
    SELECT
        OBJECT_SCHEMA, OBJECT_NAME,
        COUNT_FETCH, COUNT_INSERT, COUNT_UPDATE, COUNT_DELETE,
        SUM_TIMER_FETCH, SUM_TIMER_INSERT, SUM_TIMER_UPDATE, SUM_TIMER_DELETE
      FROM performance_schema.table_io_waits_summary_by_table
      WHERE OBJECT_SCHEMA NOT IN ('mysql', 'performance_schema')
"""

OPERATIONS = ('fetch', 'insert', 'update', 'delete')


def io_wait_columns(prefix, count_help, time_help, label_names):
    count_desc = new_desc(SUBSYSTEM, f"{prefix}_io_waits_total", count_help, label_names, COUNTER)
    time_desc = new_desc(SUBSYSTEM, f"{prefix}_io_waits_seconds_total", time_help, label_names, COUNTER)
    columns = {}
    for operation in OPERATIONS:
        columns[f"COUNT_{operation.upper()}"] = WideColumn(count_desc, extra_labels=(operation,))
        columns[f"SUM_TIMER_{operation.upper()}"] = WideColumn(time_desc, PICO_SECONDS, (operation,))
    return columns


TABLE_IO_WAITS_DECODER = WideRowDecoder(['schema', 'name'], io_wait_columns(
    'table',
    'The total number of table I/O wait events for each table and operation.',
    'The total time of table I/O wait events for each table and operation.',
    ['schema', 'name', 'operation'],
))


class TableIOWaits(Scraper):
    name = 'perf_schema.tableiowaits'
    help = 'Collect metrics from performance_schema.table_io_waits_summary_by_table'
    min_version = 5.6

    def scrape(self, ctx, db, sink):
        TABLE_IO_WAITS_DECODER.decode(db.query(TABLE_IO_WAITS_QUERY), sink)


INDEX_IO_WAITS_QUERY = """
    SELECT OBJECT_SCHEMA, OBJECT_NAME, ifnull(INDEX_NAME, 'NONE') as INDEX_NAME,
        COUNT_FETCH, COUNT_INSERT, COUNT_UPDATE, COUNT_DELETE,
        SUM_TIMER_FETCH, SUM_TIMER_INSERT, SUM_TIMER_UPDATE, SUM_TIMER_DELETE
      FROM performance_schema.table_io_waits_summary_by_index_usage
      WHERE OBJECT_SCHEMA NOT IN ('mysql', 'performance_schema')
"""

INDEX_IO_WAITS_DECODER = WideRowDecoder(['schema', 'name', 'index'], io_wait_columns(
    'index',
    'The total number of index I/O wait events for each index and operation.',
    'The total time of index I/O wait events for each index and operation.',
    ['schema', 'name', 'index', 'operation'],
))


def blank_index_inserts(rows):
    """Inserts are only attributed to the NONE pseudo-index."""
    columns = [c.upper() for c in rows.columns]
    insert_positions = [i for i, c in enumerate(columns) if c in ('COUNT_INSERT', 'SUM_TIMER_INSERT')]
    blanked = []
    for row in rows:
        if to_text(row[2]) != 'NONE':
            row = tuple(None if i in insert_positions else v for i, v in enumerate(row))
        blanked.append(row)
    return Rows(rows.columns, tuple(blanked))


class IndexIOWaits(Scraper):
    name = 'perf_schema.indexiowaits'
    help = 'Collect metrics from performance_schema.table_io_waits_summary_by_index_usage'
    min_version = 5.6

    def scrape(self, ctx, db, sink):
        INDEX_IO_WAITS_DECODER.decode(blank_index_inserts(db.query(INDEX_IO_WAITS_QUERY)), sink)


EVENTS_WAITS_QUERY = """
    SELECT EVENT_NAME, COUNT_STAR, SUM_TIMER_WAIT
      FROM performance_schema.events_waits_summary_global_by_event_name
"""

EVENTS_WAITS_DECODER = WideRowDecoder(['event_name'], {
    'COUNT_STAR': WideColumn(new_desc(SUBSYSTEM, 'events_waits_total',
                                      'The total events waits by event name.', ['event_name'], COUNTER)),
    'SUM_TIMER_WAIT': WideColumn(new_desc(SUBSYSTEM, 'events_waits_seconds_total',
                                          'The total seconds of events waits by event name.',
                                          ['event_name'], COUNTER), PICO_SECONDS),
})


class EventsWaits(Scraper):
    name = 'perf_schema.eventswaits'
    help = 'Collect metrics from performance_schema.events_waits_summary_global_by_event_name'
    min_version = 5.5

    def scrape(self, ctx, db, sink):
        EVENTS_WAITS_DECODER.decode(db.query(EVENTS_WAITS_QUERY), sink)


FILE_EVENTS_QUERY = """
    SELECT
        EVENT_NAME,
        COUNT_READ, SUM_TIMER_READ, SUM_NUMBER_OF_BYTES_READ,
        COUNT_WRITE, SUM_TIMER_WRITE, SUM_NUMBER_OF_BYTES_WRITE,
        COUNT_MISC, SUM_TIMER_MISC
      FROM performance_schema.file_summary_by_event_name
"""

_FILE_EVENT_LABELS = ['event_name', 'mode']
FILE_EVENTS = new_desc(SUBSYSTEM, 'file_events_total',
                       'The total file events by event name/mode.', _FILE_EVENT_LABELS, COUNTER)
FILE_EVENTS_SECONDS = new_desc(SUBSYSTEM, 'file_events_seconds_total',
                               'The total seconds of file events by event name/mode.', _FILE_EVENT_LABELS, COUNTER)
FILE_EVENTS_BYTES = new_desc(SUBSYSTEM, 'file_events_bytes_total',
                             'The total bytes of file events by event name/mode.', _FILE_EVENT_LABELS, COUNTER)


def file_event_columns():
    columns = {}
    for mode in ('read', 'write', 'misc'):
        columns[f"COUNT_{mode.upper()}"] = WideColumn(FILE_EVENTS, extra_labels=(mode,))
        columns[f"SUM_TIMER_{mode.upper()}"] = WideColumn(FILE_EVENTS_SECONDS, PICO_SECONDS, (mode,))
    # misc operations move no bytes
    for mode in ('read', 'write'):
        columns[f"SUM_NUMBER_OF_BYTES_{mode.upper()}"] = WideColumn(FILE_EVENTS_BYTES, extra_labels=(mode,))
    return columns


FILE_EVENTS_DECODER = WideRowDecoder(['event_name'], file_event_columns())


class FileEvents(Scraper):
    name = 'perf_schema.file_events'
    help = 'Collect metrics from performance_schema.file_summary_by_event_name'
    min_version = 5.6

    def scrape(self, ctx, db, sink):
        FILE_EVENTS_DECODER.decode(db.query(FILE_EVENTS_QUERY), sink)


FILE_INSTANCES_QUERY = """
    SELECT
        FILE_NAME, EVENT_NAME,
        COUNT_READ, COUNT_WRITE,
        SUM_NUMBER_OF_BYTES_READ, SUM_NUMBER_OF_BYTES_WRITE
      FROM performance_schema.file_summary_by_instance
      WHERE FILE_NAME REGEXP %s
"""

_FILE_INSTANCE_LABELS = ['file_name', 'event_name', 'mode']
FILE_INSTANCES = new_desc(SUBSYSTEM, 'file_instances_total',
                          'The total number of file read/write events.', _FILE_INSTANCE_LABELS, COUNTER)
FILE_INSTANCES_BYTES = new_desc(SUBSYSTEM, 'file_instances_bytes',
                                'The number of bytes processed by file read/write events.',
                                _FILE_INSTANCE_LABELS, COUNTER)


class FileInstances(Configurable, Scraper):
    name = 'perf_schema.file_instances'
    help = 'Collect metrics from performance_schema.file_summary_by_instance'
    min_version = 5.5
    arg_defs = (
        ArgDef('filter', STRING, '.*', 'RegEx file_name filter for performance_schema.file_summary_by_instance'),
        ArgDef('remove_prefix', STRING, '/var/lib/mysql/',
               'Remove path prefix in performance_schema.file_summary_by_instance'),
    )

    def scrape(self, ctx, db, sink):
        prefix = self.arg('remove_prefix')
        for row in db.query(FILE_INSTANCES_QUERY, (self.arg('filter'),)):
            file_name, event_name = to_text(row[0]), to_text(row[1])
            if prefix and file_name.startswith(prefix):
                file_name = file_name[len(prefix):]
            counts = (('read', row[2], row[4]), ('write', row[3], row[5]))
            for mode, count, size in counts:
                sink.emit(FILE_INSTANCES, parse_status(count) or 0.0, file_name, event_name, mode)
                sink.emit(FILE_INSTANCES_BYTES, parse_status(size) or 0.0, file_name, event_name, mode)


TABLE_LOCK_WAITS_QUERY = """
    SELECT
        OBJECT_SCHEMA, OBJECT_NAME,
        COUNT_READ_NORMAL, COUNT_READ_WITH_SHARED_LOCKS, COUNT_READ_HIGH_PRIORITY, COUNT_READ_NO_INSERT,
        COUNT_READ_EXTERNAL,
        COUNT_WRITE_ALLOW_WRITE, COUNT_WRITE_CONCURRENT_INSERT, COUNT_WRITE_LOW_PRIORITY, COUNT_WRITE_NORMAL,
        COUNT_WRITE_EXTERNAL,
        SUM_TIMER_READ_NORMAL, SUM_TIMER_READ_WITH_SHARED_LOCKS, SUM_TIMER_READ_HIGH_PRIORITY,
        SUM_TIMER_READ_NO_INSERT, SUM_TIMER_READ_EXTERNAL,
        SUM_TIMER_WRITE_ALLOW_WRITE, SUM_TIMER_WRITE_CONCURRENT_INSERT, SUM_TIMER_WRITE_LOW_PRIORITY,
        SUM_TIMER_WRITE_NORMAL, SUM_TIMER_WRITE_EXTERNAL
      FROM performance_schema.table_lock_waits_summary_by_table
      WHERE OBJECT_SCHEMA NOT IN ('mysql', 'performance_schema', 'information_schema')
"""

SQL_LOCK_OPERATIONS = (
    'read_normal', 'read_with_shared_locks', 'read_high_priority', 'read_no_insert',
    'write_normal', 'write_allow_write', 'write_concurrent_insert', 'write_low_priority',
)

_LOCK_LABELS = ['schema', 'name', 'operation']
SQL_LOCK_WAITS = new_desc(SUBSYSTEM, 'sql_lock_waits_total',
                          'The total number of SQL lock wait events for each table and operation.',
                          _LOCK_LABELS, COUNTER)
EXTERNAL_LOCK_WAITS = new_desc(SUBSYSTEM, 'external_lock_waits_total',
                               'The total number of external lock wait events for each table and operation.',
                               _LOCK_LABELS, COUNTER)
SQL_LOCK_WAITS_SECONDS = new_desc(SUBSYSTEM, 'sql_lock_waits_seconds_total',
                                  'The total time of SQL lock wait events for each table and operation.',
                                  _LOCK_LABELS, COUNTER)
EXTERNAL_LOCK_WAITS_SECONDS = new_desc(SUBSYSTEM, 'external_lock_waits_seconds_total',
                                       'The total time of external lock wait events for each table and operation.',
                                       _LOCK_LABELS, COUNTER)


def lock_wait_columns():
    columns = {}
    for operation in SQL_LOCK_OPERATIONS:
        columns[f"COUNT_{operation.upper()}"] = WideColumn(SQL_LOCK_WAITS, extra_labels=(operation,))
        columns[f"SUM_TIMER_{operation.upper()}"] = WideColumn(SQL_LOCK_WAITS_SECONDS, PICO_SECONDS, (operation,))
    for operation in ('read', 'write'):
        columns[f"COUNT_{operation.upper()}_EXTERNAL"] = WideColumn(EXTERNAL_LOCK_WAITS, extra_labels=(operation,))
        columns[f"SUM_TIMER_{operation.upper()}_EXTERNAL"] = WideColumn(EXTERNAL_LOCK_WAITS_SECONDS,
                                                                       PICO_SECONDS, (operation,))
    return columns


TABLE_LOCK_WAITS_DECODER = WideRowDecoder(['schema', 'name'], lock_wait_columns())


class TableLockWaits(Scraper):
    name = 'perf_schema.tablelocks'
    help = 'Collect metrics from performance_schema.table_lock_waits_summary_by_table'
    min_version = 5.6

    def scrape(self, ctx, db, sink):
        TABLE_LOCK_WAITS_DECODER.decode(db.query(TABLE_LOCK_WAITS_QUERY), sink)


MEMORY_EVENTS_QUERY = """
    SELECT
        EVENT_NAME, SUM_NUMBER_OF_BYTES_ALLOC, SUM_NUMBER_OF_BYTES_FREE, CURRENT_NUMBER_OF_BYTES_USED
      FROM performance_schema.memory_summary_global_by_event_name
      WHERE COUNT_ALLOC > 0
"""

MEMORY_ALLOC_BYTES = new_desc(SUBSYSTEM, 'memory_events_alloc_bytes_total',
                              'The total number of bytes allocated by events.', ['event_name'], COUNTER)
MEMORY_FREE_BYTES = new_desc(SUBSYSTEM, 'memory_events_free_bytes_total',
                             'The total number of bytes freed by events.', ['event_name'], COUNTER)
MEMORY_USED_BYTES = new_desc(SUBSYSTEM, 'memory_events_used_bytes',
                             'The number of bytes currently allocated by events.', ['event_name'], GAUGE)


class MemoryEvents(Configurable, Scraper):
    name = 'perf_schema.memory_events'
    help = 'Collect metrics from performance_schema.memory_summary_global_by_event_name'
    min_version = 5.7
    arg_defs = (
        ArgDef('remove_prefix', STRING, 'memory/',
               'Remove instrument prefix in performance_schema.memory_summary_global_by_event_name'),
    )

    def scrape(self, ctx, db, sink):
        prefix = self.arg('remove_prefix')
        for event_name, allocated, freed, used in db.query(MEMORY_EVENTS_QUERY):
            event_name = to_text(event_name)
            if prefix and event_name.startswith(prefix):
                event_name = event_name[len(prefix):]
            sink.emit(MEMORY_ALLOC_BYTES, parse_status(allocated) or 0.0, event_name)
            sink.emit(MEMORY_FREE_BYTES, parse_status(freed) or 0.0, event_name)
            # CURRENT_NUMBER_OF_BYTES_USED can go negative when memory moves between threads.
            sink.emit(MEMORY_USED_BYTES, parse_status(used) or 0.0, event_name)


# group replication

REPLICATION_GROUP_MEMBERS_QUERY = """
    SELECT CHANNEL_NAME, MEMBER_ID, MEMBER_HOST, MEMBER_PORT, MEMBER_STATE, MEMBER_ROLE, MEMBER_VERSION
      FROM performance_schema.replication_group_members
"""

_MEMBER_LABELS = ['channel_name', 'member_id', 'member_host', 'member_port', 'member_state',
                  'member_role', 'member_version']
REPLICATION_GROUP_MEMBER = new_desc(
    SUBSYSTEM, 'replication_group_member',
    'Information about the replication group member: '
    'channel_name, member_id, member_host, member_port, member_state, member_role, member_version.',
    _MEMBER_LABELS, GAUGE,
)


class ReplicationGroupMembers(Scraper):
    name = 'perf_schema.replication_group_members'
    help = 'Collect metrics from performance_schema.replication_group_members'
    min_version = 8.0

    def scrape(self, ctx, db, sink):
        for row in db.query(REPLICATION_GROUP_MEMBERS_QUERY):
            labels = [to_text(v) for v in row[:len(_MEMBER_LABELS)]]
            labels += [''] * (len(_MEMBER_LABELS) - len(labels))
            sink.emit(REPLICATION_GROUP_MEMBER, 1, *labels)


REPLICATION_GROUP_MEMBER_STATS_QUERY = """
    SELECT * FROM performance_schema.replication_group_member_stats WHERE MEMBER_ID=@@server_uuid
"""


def _member_stat(name, help_text, metric_type=COUNTER):
    return new_desc(SUBSYSTEM, name, help_text, (), metric_type)


REPLICATION_GROUP_MEMBER_STATS = {
    'COUNT_TRANSACTIONS_IN_QUEUE': _member_stat(
        'transactions_in_queue',
        'The number of transactions in the queue pending conflict detection checks.', GAUGE),
    'COUNT_TRANSACTIONS_CHECKED': _member_stat(
        'transactions_checked_total', 'The number of transactions that have been checked for conflicts.'),
    'COUNT_CONFLICTS_DETECTED': _member_stat(
        'conflicts_detected_total', 'The number of transactions that have not passed the conflict detection check.'),
    'COUNT_TRANSACTIONS_ROWS_VALIDATING': _member_stat(
        'transactions_rows_validating_total',
        'Number of transaction rows which can be used for certification, but have not been garbage collected.'),
    'COUNT_TRANSACTIONS_REMOTE_IN_APPLIER_QUEUE': _member_stat(
        'transactions_remote_in_applier_queue',
        'The number of transactions that this member has received from the replication group '
        'which are waiting to be applied.', GAUGE),
    'COUNT_TRANSACTIONS_REMOTE_APPLIED': _member_stat(
        'transactions_remote_applied_total',
        'Number of transactions this member has received from the group and applied.'),
    'COUNT_TRANSACTIONS_LOCAL_PROPOSED': _member_stat(
        'transactions_local_proposed_total',
        'Number of transactions which originated on this member and were sent to the group.'),
    'COUNT_TRANSACTIONS_LOCAL_ROLLBACK': _member_stat(
        'transactions_local_rollback_total',
        'Number of transactions which originated on this member and were rolled back by the group.'),
}


class ReplicationGroupMemberStats(Scraper):
    name = 'perf_schema.replication_group_member_stats'
    help = 'Collect metrics from performance_schema.replication_group_member_stats'
    min_version = 5.7

    def scrape(self, ctx, db, sink):
        rows = db.query(REPLICATION_GROUP_MEMBER_STATS_QUERY)
        for row in rows.as_dicts():
            for column, raw in row.items():
                desc = REPLICATION_GROUP_MEMBER_STATS.get(column.upper())
                value = parse_status(raw)
                if desc is not None and value is not None:
                    sink.emit(desc, value)


REPLICATION_APPLIER_STATUS_BY_WORKER_QUERY = """
    SELECT CHANNEL_NAME, WORKER_ID,
        LAST_APPLIED_TRANSACTION_ORIGINAL_COMMIT_TIMESTAMP, LAST_APPLIED_TRANSACTION_IMMEDIATE_COMMIT_TIMESTAMP,
        LAST_APPLIED_TRANSACTION_START_APPLY_TIMESTAMP, LAST_APPLIED_TRANSACTION_END_APPLY_TIMESTAMP,
        APPLYING_TRANSACTION_ORIGINAL_COMMIT_TIMESTAMP, APPLYING_TRANSACTION_IMMEDIATE_COMMIT_TIMESTAMP,
        APPLYING_TRANSACTION_START_APPLY_TIMESTAMP,
        TIMESTAMPDIFF(SECOND, APPLYING_TRANSACTION_ORIGINAL_COMMIT_TIMESTAMP, NOW()) as REPLICATION_LAG
      FROM performance_schema.replication_applier_status_by_worker
"""

_WORKER_LABELS = ['channel_name', 'member_id']


def _worker(name, help_text):
    return WideColumn(new_desc(SUBSYSTEM, name, help_text, _WORKER_LABELS, GAUGE))


APPLIER_STATUS_BY_WORKER_DECODER = WideRowDecoder(_WORKER_LABELS, {
    'LAST_APPLIED_TRANSACTION_ORIGINAL_COMMIT_TIMESTAMP': _worker(
        'last_applied_transaction_original_commit_timestamp',
        'A timestamp shows when the last transaction applied by this worker was committed on the original master.'),
    'LAST_APPLIED_TRANSACTION_IMMEDIATE_COMMIT_TIMESTAMP': _worker(
        'last_applied_transaction_immediate_commit_timestamp',
        'A timestamp shows when the last transaction applied by this worker was committed on the immediate master.'),
    'LAST_APPLIED_TRANSACTION_START_APPLY_TIMESTAMP': _worker(
        'last_applied_transaction_start_apply_timestamp',
        'A timestamp shows when this worker started applying the last applied transaction.'),
    'LAST_APPLIED_TRANSACTION_END_APPLY_TIMESTAMP': _worker(
        'last_applied_transaction_end_apply_timestamp',
        'A timestamp shows when this worker finished applying the last applied transaction.'),
    'APPLYING_TRANSACTION_ORIGINAL_COMMIT_TIMESTAMP': _worker(
        'applying_transaction_original_commit_timestamp',
        'A timestamp that shows when the transaction this worker is currently applying '
        'was committed on the original master.'),
    'APPLYING_TRANSACTION_IMMEDIATE_COMMIT_TIMESTAMP': _worker(
        'applying_transaction_immediate_commit_timestamp',
        'A timestamp shows when the transaction this worker is currently applying '
        'was committed on the immediate master.'),
    'APPLYING_TRANSACTION_START_APPLY_TIMESTAMP': _worker(
        'applying_transaction_start_apply_timestamp',
        'A timestamp shows when this worker started its first attempt to apply '
        'the transaction that is currently being applied.'),
    'REPLICATION_LAG': _worker(
        'replication_lag_seconds',
        'Seconds since the transaction this worker is applying was committed on the original master.'),
})

# 0000-00-00 00:00:00 in these columns means no transaction.
_ZERO_TIMESTAMP = re.compile(r'^0000-00-00')


def zero_unset_timestamps(rows, width=len(_WORKER_LABELS)):
    cleaned = []
    for row in rows:
        values = tuple(0 if v is None or _ZERO_TIMESTAMP.match(to_text(v)) else v for v in row[width:])
        cleaned.append(tuple(row[:width]) + values)
    return Rows(rows.columns, tuple(cleaned))


class ReplicationApplierStatusByWorker(Scraper):
    name = 'perf_schema.replication_applier_status_by_worker'
    help = 'Collect metrics from performance_schema.replication_applier_status_by_worker'
    min_version = 5.7

    def scrape(self, ctx, db, sink):
        rows = db.query(REPLICATION_APPLIER_STATUS_BY_WORKER_QUERY)
        APPLIER_STATUS_BY_WORKER_DECODER.decode(zero_unset_timestamps(rows), sink)
