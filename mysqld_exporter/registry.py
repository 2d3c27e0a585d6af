"""The scraper catalogue."""
import logging
from threading import Lock

from .args import is_configurable
from .errors import ArgError, ConfigError, RegistryError


class Scraper:
    """A collection unit bound to one query and one way of turning rows into samples.

    Subclasses set the class attributes and implement ``scrape``. Instances
    are created per request and must not keep state between requests.
    """

    name = None
    help = ''
    min_version = 0.0
    default_enabled = False

    def scrape(self, ctx, db, sink):
        raise NotImplementedError

    def __repr__(self):
        return f"<{type(self).__name__} {self.name}>"


class Registry:
    """Named scraper classes plus their enabled flags.

    Registration happens at startup and ends with ``freeze``. The enabled
    map is replaced as a whole on every change so readers never lock.
    """

    def __init__(self, scrapers=()):
        self._scrapers = {}
        self._enabled = {}
        self._lock = Lock()
        self._frozen = False
        for scraper in scrapers:
            self.register(scraper)

    def register(self, scraper):
        if self._frozen:
            raise RegistryError(f"cannot register scraper {scraper.name}: registry is frozen")
        if not scraper.name:
            raise RegistryError(f"scraper {scraper!r} has no name")
        with self._lock:
            if scraper.name in self._scrapers:
                raise RegistryError(f"scraper {scraper.name} is already registered")
            self._scrapers[scraper.name] = scraper
            enabled = dict(self._enabled)
            enabled[scraper.name] = bool(scraper.default_enabled)
            self._enabled = enabled
        return scraper

    def freeze(self):
        self._frozen = True

    @property
    def frozen(self):
        return self._frozen

    def all(self):
        return list(self._scrapers.values())

    def names(self):
        return list(self._scrapers)

    def lookup(self, name):
        return self._scrapers.get(name)

    def set_enabled(self, name, enabled):
        if name not in self._scrapers:
            raise RegistryError(f"unknown scraper {name}")
        with self._lock:
            updated = dict(self._enabled)
            updated[name] = bool(enabled)
            self._enabled = updated

    def is_enabled(self, name):
        return self._enabled.get(name, False)

    def build(self, config):
        """Return fresh, configured scraper instances for every collector enabled in config."""
        scrapers = []
        for entry in config.collectors:
            cls = self.lookup(entry.name)
            if cls is None:
                raise ConfigError(f"unknown scraper {entry.name}")
            if not entry.enabled:
                continue
            scraper = cls()
            if entry.args:
                if not is_configurable(scraper):
                    raise ArgError(f"scraper {entry.name} does not accept any args")
                scraper.configure(*entry.args)
            scrapers.append(scraper)
        logging.debug(f"Built scrapers: {[s.name for s in scrapers]}")
        return scrapers
