from __future__ import annotations

import importlib

from .. import fspak, TestBase, PakBuilder
from fspak.units import Unit
from fspak.lib.environment import LogLevel

__all__ = ['fspak', 'TestUnitBase', 'PakBuilder']


class TestUnitBase(TestBase):

    @staticmethod
    def _relative_module_path(path: str, strip_test=True):
        path = path.split('.')
        path = path[1:]
        if strip_test:
            path = [x[4:].lstrip('_-.') if x.startswith('test') else x for x in path]
        return '.'.join(path)

    @classmethod
    def unit(cls) -> type[Unit]:
        name = cls._relative_module_path(cls.__module__)
        module = importlib.import_module(F'fspak.{name}')
        basename = name.rsplit('.', 1)[-1]
        entry = getattr(module, basename)
        if not isinstance(entry, type) or not issubclass(entry, Unit):
            raise LookupError(F'The module fspak.{name} does not define a unit named {basename}.')
        return entry

    @classmethod
    def load(cls, *args: str) -> Unit:
        unit = cls.unit().assemble(*args)
        unit.log_level = LogLevel.DETACHED
        return unit
