"""SHOW GLOBAL VARIABLES."""
import re

from ..decoders import InfoRoute, StatusDecoder, to_text, valid_name
from ..metrics import GAUGE, new_desc
from ..registry import Scraper

GLOBAL_VARIABLES_QUERY = "SHOW GLOBAL VARIABLES"
SUBSYSTEM = 'global_variables'

GALERA_VARIABLES_INFO = new_desc('galera', 'variables_info', 'PXC/Galera variables information.',
                                 ['wsrep_cluster_name'], GAUGE)
GALERA_GCACHE_SIZE = new_desc('galera', 'gcache_size_bytes', 'PXC/Galera gcache size.', (), GAUGE)

_GCACHE_SIZE_RE = re.compile(r'gcache\.size = (\d+)([MG]?);')
_UNITS = {'': 1, 'M': 1024 * 1024, 'G': 1024 * 1024 * 1024}

DECODER = StatusDecoder(
    SUBSYSTEM,
    'Generic gauge metric from SHOW GLOBAL VARIABLES: %s',
    default_type=GAUGE,
    info=InfoRoute(GALERA_VARIABLES_INFO, ('wsrep_cluster_name',)),
)


def parse_gcache_size(provider_options):
    """Bytes from the gcache.size entry of wsrep_provider_options, or None."""
    match = _GCACHE_SIZE_RE.search(provider_options)
    if not match:
        return None
    return float(int(match.group(1)) * _UNITS[match.group(2)])


class GlobalVariables(Scraper):
    name = 'global_variables'
    help = 'Collect from SHOW GLOBAL VARIABLES'
    default_enabled = True

    def scrape(self, ctx, db, sink):
        rows = db.query(GLOBAL_VARIABLES_QUERY)
        DECODER.decode(rows, sink)
        for row in rows:
            if valid_name(to_text(row[0])) == 'wsrep_provider_options':
                size = parse_gcache_size(to_text(row[1]))
                if size is not None:
                    sink.emit(GALERA_GCACHE_SIZE, size)
