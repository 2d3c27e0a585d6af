"""SHOW ENGINE ... STATUS pages."""
import re

from ..decoders import StatusDecoder, TextParser, TextRule, to_text
from ..metrics import COUNTER, GAUGE, UNTYPED, new_desc
from ..registry import Scraper

ENGINE_INNODB_STATUS_QUERY = "SHOW ENGINE INNODB STATUS"
ENGINE_TOKUDB_STATUS_QUERY = "SHOW ENGINE TOKUDB STATUS"

INNODB_SUBSYSTEM = 'engine_innodb'
TOKUDB_SUBSYSTEM = 'engine_tokudb_status'


def _innodb(name, help_text, metric_type=GAUGE, labels=()):
    return new_desc(INNODB_SUBSYSTEM, name, help_text, labels, metric_type)


QUERIES_INSIDE = _innodb('queries_inside_innodb', 'Queries inside InnoDB.')
QUERIES_IN_QUEUE = _innodb('queries_in_queue', 'Queries in queue.')
READ_VIEWS = _innodb('read_views_open_inside_innodb', 'Read views open inside InnoDB.')
HISTORY_LIST_LENGTH = _innodb('history_list_length', 'Length of the undo log history list.')
LOG_SEQUENCE_NUMBER = _innodb('log_sequence_number', 'Current log sequence number.', COUNTER)
LAST_CHECKPOINT = _innodb('last_checkpoint_at', 'Log sequence number of the last checkpoint.')
OS_FILE_OPERATIONS = _innodb('os_file_operations', 'OS file operations since server start.',
                             COUNTER, ['operation'])

INNODB_STATUS_PARSER = TextParser((
    TextRule(re.compile(r'(\d+) queries inside InnoDB, (\d+) queries in queue'),
             ((1, QUERIES_INSIDE, ()), (2, QUERIES_IN_QUEUE, ()))),
    TextRule(re.compile(r'(\d+) read views open inside InnoDB'), ((1, READ_VIEWS, ()),)),
    TextRule(re.compile(r'^History list length (\d+)'), ((1, HISTORY_LIST_LENGTH, ()),),
             section='TRANSACTIONS'),
    TextRule(re.compile(r'^Log sequence number\s+(\d+)'), ((1, LOG_SEQUENCE_NUMBER, ()),), section='LOG'),
    TextRule(re.compile(r'^Last checkpoint at\s+(\d+)'), ((1, LAST_CHECKPOINT, ()),), section='LOG'),
    TextRule(re.compile(r'^(\d+) OS file reads, (\d+) OS file writes, (\d+) OS fsyncs'),
             ((1, OS_FILE_OPERATIONS, ('read',)),
              (2, OS_FILE_OPERATIONS, ('write',)),
              (3, OS_FILE_OPERATIONS, ('fsync',))),
             section='FILE I/O'),
))


class EngineInnodbStatus(Scraper):
    name = 'engine_innodb_status'
    help = 'Collect from SHOW ENGINE INNODB STATUS'

    def scrape(self, ctx, db, sink):
        rows = db.query(ENGINE_INNODB_STATUS_QUERY)
        # Type, Name, Status
        for row in rows:
            if len(row) >= 3:
                INNODB_STATUS_PARSER.decode(to_text(row[2]), sink)


_TOKUDB_REPLACEMENTS = (
    ('>', ''), (',', ''), (':', ''), ('(', ''), (')', ''),
    (' ', '_'), ('-', '_'), ('+', 'and'), ('/', 'and'),
)


def sanitize_tokudb_metric(name):
    for old, new in _TOKUDB_REPLACEMENTS:
        name = name.replace(old, new)
    return name.lower()


TOKUDB_DECODER = StatusDecoder(
    TOKUDB_SUBSYSTEM,
    'Generic metric from SHOW ENGINE TOKUDB STATUS: %s',
    default_type=UNTYPED,
    normalize=sanitize_tokudb_metric,
    key_column=1,
)


class EngineTokudbStatus(Scraper):
    name = 'engine_tokudb_status'
    help = 'Collect from SHOW ENGINE TOKUDB STATUS'
    min_version = 5.6

    def scrape(self, ctx, db, sink):
        TOKUDB_DECODER.decode(db.query(ENGINE_TOKUDB_STATUS_QUERY), sink)


ENGINE_ROCKSDB_STATUS_QUERY = "SHOW ENGINE ROCKSDB STATUS"
ROCKSDB_SUBSYSTEM = 'engine_rocksdb'

# Statistics counters worth exporting; other counters are skipped.
ROCKSDB_COUNTERS = (
    'rocksdb.block.cache.miss', 'rocksdb.block.cache.hit', 'rocksdb.block.cache.add',
    'rocksdb.block.cache.add.failures',
    'rocksdb.block.cache.data.miss', 'rocksdb.block.cache.data.hit', 'rocksdb.block.cache.data.add',
    'rocksdb.block.cache.index.miss', 'rocksdb.block.cache.index.hit', 'rocksdb.block.cache.index.add',
    'rocksdb.block.cache.index.bytes.insert', 'rocksdb.block.cache.index.bytes.evict',
    'rocksdb.block.cache.filter.miss', 'rocksdb.block.cache.filter.hit', 'rocksdb.block.cache.filter.add',
    'rocksdb.block.cache.filter.bytes.insert', 'rocksdb.block.cache.filter.bytes.evict',
    'rocksdb.block.cache.bytes.read', 'rocksdb.block.cache.bytes.write',
    'rocksdb.block.cache.data.bytes.insert',
    'rocksdb.bloom.filter.useful',
    'rocksdb.memtable.miss', 'rocksdb.memtable.hit',
    'rocksdb.l0.hit', 'rocksdb.l1.hit',
    'rocksdb.number.keys.read', 'rocksdb.number.keys.written', 'rocksdb.number.keys.updated',
    'rocksdb.bytes.read', 'rocksdb.bytes.written',
    'rocksdb.number.db.seek', 'rocksdb.number.db.seek.found',
    'rocksdb.number.db.next', 'rocksdb.number.db.next.found',
    'rocksdb.number.db.prev', 'rocksdb.number.db.prev.found',
    'rocksdb.db.iter.bytes.read', 'rocksdb.number.reseeks.iteration',
    'rocksdb.wal.synced', 'rocksdb.wal.bytes',
    'rocksdb.no.file.opens', 'rocksdb.no.file.closes', 'rocksdb.no.file.errors',
    'rocksdb.write.self', 'rocksdb.write.other', 'rocksdb.write.timeout', 'rocksdb.write.wal',
)


def _rocksdb_rule(counter):
    name = counter[len('rocksdb.'):].replace('.', '_')
    desc = new_desc(ROCKSDB_SUBSYSTEM, name, counter, (), COUNTER)
    return TextRule(re.compile(r'^' + re.escape(counter) + r' COUNT : (\d+)$'), ((1, desc, ()),))


ROCKSDB_STATUS_PARSER = TextParser(_rocksdb_rule(counter) for counter in ROCKSDB_COUNTERS)


class EngineRocksdbStatus(Scraper):
    name = 'engine_rocksdb_status'
    help = 'Collect from SHOW ENGINE ROCKSDB STATUS'
    min_version = 5.6

    def scrape(self, ctx, db, sink):
        for row in db.query(ENGINE_ROCKSDB_STATUS_QUERY):
            # Type, Name, Status; counters are on the STATISTICS/rocksdb row.
            if len(row) >= 3 and to_text(row[0]) == 'STATISTICS' and to_text(row[1]) == 'rocksdb':
                ROCKSDB_STATUS_PARSER.decode(to_text(row[2]), sink)
