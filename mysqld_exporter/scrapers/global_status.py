"""SHOW GLOBAL STATUS."""
import logging
import re

from ..decoders import InfoRoute, StatusDecoder, StatusRule, to_text, valid_name
from ..metrics import COUNTER, GAUGE, new_desc
from ..registry import Scraper

GLOBAL_STATUS_QUERY = "SHOW GLOBAL STATUS"
SUBSYSTEM = 'global_status'

COMMANDS = new_desc(SUBSYSTEM, 'commands_total', 'Total number of executed MySQL commands.',
                    ['command'], COUNTER)
HANDLERS = new_desc(SUBSYSTEM, 'handlers_total', 'Total number of executed MySQL handlers.',
                    ['handler'], COUNTER)
CONNECTION_ERRORS = new_desc(SUBSYSTEM, 'connection_errors_total', 'Total number of MySQL connection errors.',
                             ['error'], COUNTER)
BUFFER_POOL_PAGES = new_desc(SUBSYSTEM, 'buffer_pool_pages', 'Innodb buffer pool pages by state.',
                             ['state'], GAUGE)
BUFFER_POOL_DIRTY_PAGES = new_desc(SUBSYSTEM, 'buffer_pool_dirty_pages', 'Innodb buffer pool dirty pages.',
                                   (), GAUGE)
BUFFER_POOL_PAGE_CHANGES = new_desc(SUBSYSTEM, 'buffer_pool_page_changes_total',
                                    'Innodb buffer pool page state changes.', ['operation'], COUNTER)
INNODB_ROW_OPS = new_desc(SUBSYSTEM, 'innodb_row_ops_total', 'Total number of MySQL InnoDB row operations.',
                          ['operation'], COUNTER)
PERFORMANCE_SCHEMA_LOST = new_desc(SUBSYSTEM, 'performance_schema_lost_total',
                                   'Total number of MySQL instrumentations that could not be loaded or created due to memory constraints.',
                                   ['instrumentation'], COUNTER)

GALERA_STATUS_INFO = new_desc('galera', 'status_info', 'PXC/Galera status information.',
                              ['wsrep_local_state_uuid', 'wsrep_cluster_state_uuid', 'wsrep_provider_version'],
                              GAUGE)
GALERA_REPL_LATENCY = tuple(
    new_desc('galera_evs_repl_latency', name, help_text, (), GAUGE)
    for name, help_text in (
        ('min_seconds', 'PXC/Galera group communication latency. Min value.'),
        ('avg_seconds', 'PXC/Galera group communication latency. Avg value.'),
        ('max_seconds', 'PXC/Galera group communication latency. Max value.'),
        ('stdev', 'PXC/Galera group communication latency. Standard Deviation.'),
        ('sample_size', 'PXC/Galera group communication latency. Sample Size.'),
    )
)

DECODER = StatusDecoder(
    SUBSYSTEM,
    'Generic metric from SHOW GLOBAL STATUS: %s',
    rules=(
        StatusRule(re.compile(r'^com_(.+)$'), COMMANDS),
        StatusRule(re.compile(r'^handler_(.+)$'), HANDLERS),
        StatusRule(re.compile(r'^connection_errors_(.+)$'), CONNECTION_ERRORS),
        StatusRule(re.compile(r'^innodb_buffer_pool_pages_(data|free|misc|old)$'), BUFFER_POOL_PAGES),
        StatusRule(re.compile(r'^innodb_buffer_pool_pages_dirty$'), BUFFER_POOL_DIRTY_PAGES),
        StatusRule(re.compile(r'^innodb_buffer_pool_pages_total$')),
        StatusRule(re.compile(r'^innodb_buffer_pool_pages_(.+)$'), BUFFER_POOL_PAGE_CHANGES),
        StatusRule(re.compile(r'^innodb_rows_(.+)$'), INNODB_ROW_OPS),
        StatusRule(re.compile(r'^performance_schema_(.+)$'), PERFORMANCE_SCHEMA_LOST),
    ),
    renames=(
        ('rpl_semi_sync_source_', 'rpl_semi_sync_master_'),
        ('rpl_semi_sync_replica_', 'rpl_semi_sync_slave_'),
    ),
    info=InfoRoute(GALERA_STATUS_INFO,
                   ('wsrep_local_state_uuid', 'wsrep_cluster_state_uuid', 'wsrep_provider_version')),
)


def emit_repl_latency(text, sink):
    """wsrep_evs_repl_latency is 'min/avg/max/stdev/sample_size'."""
    parts = text.split('/')
    if len(parts) != len(GALERA_REPL_LATENCY):
        return
    try:
        values = [float(p) for p in parts]
    except ValueError:
        logging.debug(f"Unparseable wsrep_evs_repl_latency: {text!r}")
        return
    for desc, value in zip(GALERA_REPL_LATENCY, values):
        sink.emit(desc, value)


class GlobalStatus(Scraper):
    name = 'global_status'
    help = 'Collect from SHOW GLOBAL STATUS'
    default_enabled = True

    def scrape(self, ctx, db, sink):
        rows = db.query(GLOBAL_STATUS_QUERY)
        DECODER.decode(rows, sink)
        for row in rows:
            if valid_name(to_text(row[0])) == 'wsrep_evs_repl_latency':
                emit_repl_latency(to_text(row[1]), sink)
