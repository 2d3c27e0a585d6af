"""Typed scraper arguments.

An argument value is a bool, an int or a str; nothing else is accepted.
"""
from dataclasses import dataclass

from .errors import ArgError

BOOL = 'bool'
INT = 'int'
STRING = 'string'
ARG_TYPES = (BOOL, INT, STRING)


def value_type(value):
    """Return the argument type name for value, or None if it is not a permitted scalar."""
    # bool is checked first since it is a subclass of int.
    if isinstance(value, bool):
        return BOOL
    if isinstance(value, int):
        return INT
    if isinstance(value, str):
        return STRING
    return None


@dataclass(frozen=True)
class ArgDef:
    name: str
    type: str
    default: object
    help: str = ''

    def __post_init__(self):
        if self.type not in ARG_TYPES:
            raise ValueError(f"arg {self.name} has unknown type {self.type!r}")
        if value_type(self.default) != self.type:
            raise ValueError(f"arg {self.name} default {self.default!r} is not a {self.type}")

    def accepts(self, value):
        return value_type(value) == self.type


@dataclass(frozen=True)
class Arg:
    name: str
    value: object


class Configurable:
    """Mixin for scrapers that take typed arguments.

    Subclasses list their ArgDefs in ``arg_defs``; instances start from the
    defaults and are changed only through ``configure``.
    """

    arg_defs = ()

    def __init__(self):
        super().__init__()
        self._args = {d.name: d.default for d in self.arg_defs}

    def arg_definitions(self):
        return list(self.arg_defs)

    def args(self):
        return [Arg(name, value) for name, value in self._args.items()]

    def arg(self, name):
        return self._args[name]

    def configure(self, *args):
        """Apply args; nothing changes unless every arg is valid."""
        defs = {d.name: d for d in self.arg_defs}
        updates = {}
        for arg in args:
            definition = defs.get(arg.name)
            if definition is None:
                raise ArgError(f"scraper {self.name} does not accept arg {arg.name}")
            if not definition.accepts(arg.value):
                raise ArgError(f"scraper {self.name} arg {arg.name} value {arg.value!r} has the wrong type")
            updates[arg.name] = arg.value
        self._args.update(updates)


def is_configurable(scraper):
    if isinstance(scraper, type):
        return issubclass(scraper, Configurable)
    return isinstance(scraper, Configurable)
