import datetime
import logging
import re

import pytz
import tzlocal

LOG_FORMAT = '[%(asctime)s] %(levelname)s: %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'

LOG_LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warn': logging.WARNING,
    'error': logging.ERROR,
}


class TZFormatter(logging.Formatter):
    """Logging formatter that renders times in a given tzinfo (pytz).

    Usage: set handler.setFormatter(TZFormatter(fmt, datefmt, tz=tzobj))
    """
    def __init__(self, fmt=None, datefmt=None, tz=None):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.tz = tz

    def formatTime(self, record, datefmt=None):
        # record.created is a POSIX timestamp
        tz = self.tz if self.tz is not None else datetime.timezone.utc
        dt = datetime.datetime.fromtimestamp(record.created, tz=tz)
        if datefmt:
            return dt.strftime(datefmt)
        return dt.isoformat()


def resolve_timezone(tz_name):
    """Return a tzinfo for tz_name; 'system' means the host's local zone."""
    if not tz_name or tz_name == 'system':
        return tzlocal.get_localzone()
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        logging.warning(f"Invalid log timezone '{tz_name}'; falling back to UTC")
        return datetime.timezone.utc


def apply_logging_timezone(tzinfo):
    """Replace formatters on existing root handlers to use tzinfo for timestamps."""
    for h in logging.root.handlers:
        h.setFormatter(TZFormatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT, tz=tzinfo))


def setup_logging(level='info', tz_name='system'):
    """Configure the root logger the same way for the CLI and gunicorn workers."""
    if level not in LOG_LEVELS:
        raise ValueError(f"Unknown log level: {level}")
    logging.basicConfig(level=LOG_LEVELS[level], format=LOG_FORMAT, datefmt=LOG_DATEFMT)
    logging.root.setLevel(LOG_LEVELS[level])
    apply_logging_timezone(resolve_timezone(tz_name))
    logging.info(f"Logging at level '{level}' with timezone '{tz_name}'")


DURATION_UNITS = {
    'ns': 1e-9,
    'us': 1e-6,
    'µs': 1e-6,
    'ms': 1e-3,
    's': 1,
    'm': 60,
    'h': 3600,
    'd': 86400,
    'w': 604800,
}

_BARE_SECONDS = re.compile(r'\d+(?:\.\d*)?|\.\d+')
_DURATION_PART = re.compile(r'(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h|d|w)')


def parse_duration(s):
    """Seconds (float) from a duration such as '500ms', '1m30s' or '2h'.

    Bare numbers are read as seconds.
    """
    text = str(s).strip().lower()
    if not text:
        raise ValueError("empty duration")
    if _BARE_SECONDS.fullmatch(text):
        return float(text)

    seconds, end = 0.0, 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != end:
            break
        seconds += float(match.group(1)) * DURATION_UNITS[match.group(2)]
        end = match.end()
    if end == 0 or end != len(text):
        raise ValueError(f"Unrecognized duration format: {s}")
    return seconds
