"""Binary log size and count."""
import logging

from ..decoders import parse_status, to_text
from ..metrics import GAUGE, new_desc
from ..registry import Scraper

LOG_BIN_QUERY = "SELECT @@log_bin"
BINLOG_QUERY = "SHOW BINARY LOGS"
SUBSYSTEM = 'binlog'

BINLOG_SIZE = new_desc(SUBSYSTEM, 'size_bytes', 'Combined size of all registered binlog files.', (), GAUGE)
BINLOG_FILES = new_desc(SUBSYSTEM, 'files', 'Number of registered binlog files.', (), GAUGE)
BINLOG_FILE_NUMBER = new_desc(SUBSYSTEM, 'file_number', 'The last binlog file number.', (), GAUGE)


class BinlogSize(Scraper):
    name = 'binlog_size'
    help = 'Collect the current size of all registered binlog files'

    def scrape(self, ctx, db, sink):
        row = db.query_row(LOG_BIN_QUERY)
        if not row or not parse_status(row[0]):
            logging.debug(f"Binary logging is disabled on {ctx.target}")
            return

        rows = db.query(BINLOG_QUERY)
        # Log_name, File_size[, Encrypted]
        size = 0.0
        last_file = None
        for row in rows:
            file_size = parse_status(row[1]) if len(row) > 1 else None
            if file_size is not None:
                size += file_size
            last_file = to_text(row[0])

        sink.emit(BINLOG_SIZE, size)
        sink.emit(BINLOG_FILES, float(len(rows)))
        if last_file is not None:
            number = parse_status(last_file)
            if number is None:
                logging.debug(f"Cannot parse a file number from binlog {last_file!r}")
            else:
                sink.emit(BINLOG_FILE_NUMBER, number)
