import datetime
import logging

import pytest
import pytz

from mysqld_exporter.logconfig import TZFormatter, resolve_timezone, setup_logging


def record_at(timestamp):
    record = logging.LogRecord('test', logging.INFO, __file__, 1, 'message', None, None)
    record.created = timestamp
    return record


def test_formatter_renders_in_zone():
    formatter = TZFormatter(fmt='%(asctime)s', datefmt='%Y-%m-%d %H:%M', tz=pytz.timezone('Asia/Tokyo'))
    assert formatter.format(record_at(0)) == '1970-01-01 09:00'


def test_formatter_defaults_to_utc_isoformat():
    assert TZFormatter(fmt='%(asctime)s').format(record_at(0)) == '1970-01-01T00:00:00+00:00'


def test_resolve_timezone():
    assert resolve_timezone('Europe/Paris') == pytz.timezone('Europe/Paris')
    assert resolve_timezone('Nowhere/Special') is datetime.timezone.utc
    assert resolve_timezone('system') is not None


def test_unknown_log_level():
    with pytest.raises(ValueError, match='Unknown log level'):
        setup_logging('verbose')
