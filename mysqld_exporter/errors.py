"""Exception types raised across the exporter.

Configuration problems are fatal at startup and keep the previous state on
reload. Scrape problems never leave the orchestrator; they are turned into
metrics there.
"""


class ExporterError(Exception):
    """Base class for every error raised by the exporter."""


class ConfigError(ExporterError):
    """Collector configuration could not be loaded, merged or validated."""


class ArgError(ConfigError):
    """A scraper argument is unknown or carries a value of the wrong type."""


class RegistryError(ExporterError):
    """Scraper registration problem (duplicate name, registry frozen)."""


class MycnfError(ExporterError):
    """The .my.cnf file could not be read or a section could not be resolved."""


class DSNError(ExporterError):
    """A connection string could not be formed or parsed."""


class DescriptorConflict(ExporterError):
    """A metric name was reused with a different type or label set."""


class ScrapeError(ExporterError):
    """A scraper failed while collecting."""


class DeadlineExceeded(ScrapeError):
    """The request deadline expired before or while a statement ran."""
