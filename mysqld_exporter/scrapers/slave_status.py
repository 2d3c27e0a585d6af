"""SHOW SLAVE STATUS and its variants."""
import logging

import pymysql

from ..db import Rows
from ..decoders import WideRowDecoder, to_text, valid_name
from ..registry import Scraper

SUBSYSTEM = 'slave_status'

# Tried in order; the first one the server accepts wins.
SLAVE_STATUS_QUERIES = (
    "SHOW ALL SLAVES STATUS",
    "SHOW SLAVE STATUS NONBLOCKING",
    "SHOW SLAVE STATUS NOLOCK",
    "SHOW SLAVE STATUS",
    "SHOW REPLICA STATUS",
)

LABEL_COLUMNS = ('master_host', 'master_uuid', 'channel_name', 'connection_name')

DECODER = WideRowDecoder(LABEL_COLUMNS, {}, unknown=(SUBSYSTEM, ''),
                         unknown_help='Generic metric from SHOW SLAVE STATUS: %s')


# MySQL 8.0.22+ spells these columns with source/replica.
RENAMED_TOKENS = {'source': 'master', 'replica': 'slave'}


def column_name(column):
    """Lowercased column name with MySQL 8 replica terminology mapped back."""
    return '_'.join(RENAMED_TOKENS.get(token, token) for token in valid_name(column).split('_'))


def reorder(rows):
    """Move the label columns to the front; missing ones become empty."""
    names = [column_name(c) for c in rows.columns]
    positions = {name: i for i, name in enumerate(names)}
    rest = [i for i, name in enumerate(names) if name not in LABEL_COLUMNS]
    reordered = []
    for row in rows:
        labels = [to_text(row[positions[c]]) if c in positions else '' for c in LABEL_COLUMNS]
        reordered.append(tuple(labels) + tuple(row[i] for i in rest))
    return Rows(LABEL_COLUMNS + tuple(names[i] for i in rest), tuple(reordered))


class SlaveStatus(Scraper):
    name = 'slave_status'
    help = 'Collect from SHOW SLAVE STATUS'
    default_enabled = True

    def scrape(self, ctx, db, sink):
        last_error = None
        for query in SLAVE_STATUS_QUERIES:
            try:
                rows = db.query(query)
            except pymysql.MySQLError as e:
                logging.debug(f"'{query}' failed on {ctx.target}: {e}")
                last_error = e
                continue
            DECODER.decode(reorder(rows), sink)
            return
        raise last_error
