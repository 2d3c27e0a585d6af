"""pt-heartbeat table."""
from ..args import BOOL, STRING, ArgDef, Configurable
from ..decoders import parse_status, to_text
from ..metrics import GAUGE, new_desc
from ..registry import Scraper

SUBSYSTEM = 'heartbeat'

HEARTBEAT_QUERY = "SELECT UNIX_TIMESTAMP(ts), UNIX_TIMESTAMP({now}), server_id from {database}.{table}"

STORED_TIMESTAMP = new_desc(SUBSYSTEM, 'stored_timestamp_seconds',
                            'Timestamp stored in the heartbeat table.', ['server_id'], GAUGE)
NOW_TIMESTAMP = new_desc(SUBSYSTEM, 'now_timestamp_seconds',
                         'Timestamp of the current server.', ['server_id'], GAUGE)


def quote_identifier(name):
    return '`' + name.replace('`', '``') + '`'


def heartbeat_query(database, table, utc):
    return HEARTBEAT_QUERY.format(
        now='UTC_TIMESTAMP(6)' if utc else 'NOW(6)',
        database=quote_identifier(database),
        table=quote_identifier(table),
    )


class Heartbeat(Configurable, Scraper):
    name = 'heartbeat'
    help = 'Collect from heartbeat'
    arg_defs = (
        ArgDef('database', STRING, 'heartbeat', 'Database from where to collect heartbeat data'),
        ArgDef('table', STRING, 'heartbeat', 'Table from where to collect heartbeat data'),
        ArgDef('utc', BOOL, False, 'Use UTC for timestamps of the current server'),
    )

    def scrape(self, ctx, db, sink):
        query = heartbeat_query(self.arg('database'), self.arg('table'), self.arg('utc'))
        for row in db.query(query):
            stored, now = parse_status(row[0]), parse_status(row[1])
            server_id = to_text(row[2])
            if stored is not None:
                sink.emit(STORED_TIMESTAMP, stored, server_id)
            if now is not None:
                sink.emit(NOW_TIMESTAMP, now, server_id)
