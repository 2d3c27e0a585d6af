"""SHOW SLAVE HOSTS on a primary."""
import uuid

from ..decoders import to_text
from ..metrics import GAUGE, new_desc
from ..registry import Scraper
from .slave_status import column_name

SLAVE_HOSTS_QUERY = "SHOW SLAVE HOSTS"

# Kept under the heartbeat subsystem for dashboard compatibility.
SLAVE_HOSTS_INFO = new_desc('heartbeat', 'mysql_slave_hosts_info', 'Information about running slaves',
                            ['server_id', 'slave_host', 'port', 'master_id', 'slave_uuid'], GAUGE)


def is_uuid(value):
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


class SlaveHosts(Scraper):
    name = 'slave_hosts'
    help = "Scrape information from 'SHOW SLAVE HOSTS'"
    min_version = 5.1

    def scrape(self, ctx, db, sink):
        for row in db.query(SLAVE_HOSTS_QUERY).as_dicts():
            row = {column_name(name): to_text(value) for name, value in row.items()}
            slave_uuid = row.get('slave_uuid', '')
            if slave_uuid and not is_uuid(slave_uuid):
                slave_uuid = ''
            sink.emit(SLAVE_HOSTS_INFO, 1, row.get('server_id', ''), row.get('host', ''), row.get('port', ''),
                      row.get('master_id', ''), slave_uuid)
