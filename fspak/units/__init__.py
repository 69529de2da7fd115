"""
This package contains the fspak units. A unit is a class inheriting from `fspak.units.Unit` which
declares its command line interface in `_interface` and implements its operation in `execute`.
Every unit can be used from the command line via its `run` method, or from Python code:

    from fspak import xtpak

    unit = xtpak('base.tntFolder', 'output', key=0xA2A2A2A2)
    unit.execute()

A unit that was created in code is detached from its logger, so it does not produce any log
output and problems are communicated only via exceptions and return values. Use the `log_level`
property to attach it:

    unit.log_level = LogLevel.INFO
"""
from __future__ import annotations

import abc
import inspect
import sys

from abc import ABCMeta
from argparse import Namespace
from typing import TYPE_CHECKING

from fspak.lib.argparser import ArgparseError, PakArgumentParser
from fspak.lib.environment import Logger, LogLevel, environment, logger

if TYPE_CHECKING:
    from fspak.lib.types import Self


def exception_to_string(exception: BaseException) -> str:
    """
    Attempts to convert a given exception to a good description that can be exposed to the user.
    """
    if not exception.args:
        return exception.__class__.__name__
    return str(exception)


class Executable(ABCMeta):
    """
    The metaclass of all units. It provides each unit class with a name and a logger, and it runs
    the unit when it is defined in the `__main__` module.
    """

    def __new__(mcs, name: str, bases: tuple, nmspc: dict, abstract=False):
        nmspc.setdefault('__doc__', '')
        return super().__new__(mcs, name, bases, nmspc)

    def __init__(cls, name: str, bases: tuple, nmspc: dict, abstract=False):
        super().__init__(name, bases, nmspc)
        if not abstract and sys.modules[cls.__module__].__name__ == '__main__':
            cls.run()

    @property
    def name(cls) -> str:
        """
        The name of the unit as it would be used on the command line.
        """
        return cls.__name__.strip('_').replace('_', '-')

    @property
    def logger(cls) -> Logger:
        """
        The debug logger instance for the unit.
        """
        try:
            return cls.__dict__['_logger']
        except KeyError:
            pass
        cls._logger = _logger = logger(cls.name)
        return _logger


class Unit(metaclass=Executable, abstract=True):
    """
    The base class for all units.
    """
    args: Namespace

    def __init__(self, **keywords):
        for key, value in dict(
            verbose=0,
            quiet=False,
        ).items():
            keywords.setdefault(key, value)
        self.args = Namespace(**keywords)
        self.console = False
        self.log_detach()

    @property
    def name(self) -> str:
        """
        Proxy to `fspak.units.Executable.name`.
        """
        return self.__class__.name

    @property
    def logger(self) -> Logger:
        return self.__class__.logger

    @property
    def is_quiet(self) -> bool:
        """
        Returns whether the global `--quiet` flag is set, indicating that the unit should not
        generate any log output.
        """
        return getattr(self.args, 'quiet', False)

    @property
    def log_level(self) -> LogLevel:
        """
        Returns the current log level as an element of `fspak.lib.environment.LogLevel`.
        """
        if self.is_quiet:
            return LogLevel.NONE
        return LogLevel(self.logger.getEffectiveLevel())

    @log_level.setter
    def log_level(self, value: int | LogLevel) -> None:
        if not isinstance(value, LogLevel):
            value = LogLevel.FromVerbosity(value)
        self.logger.setLevel(value)

    def log_detach(self) -> Self:
        """
        Detach the unit from its logger. Any exceptions that occur during runtime will be raised to
        the caller.
        """
        self.log_level = LogLevel.DETACHED
        return self

    @classmethod
    def log_fail(cls, *messages) -> bool:
        """
        Log the message if and only if the current log level is at least `fspak.lib.environment.LogLevel.ERROR`.
        """
        rv = cls.logger.isEnabledFor(LogLevel.ERROR)
        if rv and messages:
            cls.logger.error(cls._output(*messages))
        return rv

    @classmethod
    def log_warn(cls, *messages) -> bool:
        """
        Log the message if and only if the current log level is at least `fspak.lib.environment.LogLevel.WARNING`.
        """
        rv = cls.logger.isEnabledFor(LogLevel.WARNING)
        if rv and messages:
            cls.logger.warning(cls._output(*messages))
        return rv

    @classmethod
    def log_info(cls, *messages) -> bool:
        """
        Log the message if and only if the current log level is at least `fspak.lib.environment.LogLevel.INFO`.
        """
        rv = cls.logger.isEnabledFor(LogLevel.INFO)
        if rv and messages:
            cls.logger.info(cls._output(*messages))
        return rv

    @classmethod
    def log_debug(cls, *messages) -> bool:
        """
        Log the message if and only if the current log level is at least `fspak.lib.environment.LogLevel.DEBUG`.
        """
        rv = cls.logger.isEnabledFor(LogLevel.DEBUG)
        if rv and messages:
            cls.logger.debug(cls._output(*messages))
        return rv

    @classmethod
    def _output(cls, *messages) -> str:
        def transform(message):
            if callable(message):
                message = message()
            if isinstance(message, BaseException):
                message = exception_to_string(message)
            return str(message)
        return ' '.join(transform(msg) for msg in messages)

    @classmethod
    def _interface(cls, argp: PakArgumentParser) -> PakArgumentParser:
        """
        Receives a reference to an argument parser. This parser will be used to parse the command
        line for this unit into the member variable called `args`. Units override this method to
        add their own arguments and call it on `super` to receive the generic options.
        """
        base = argp.add_argument_group('generic options')
        base.add_argument('-h', '--help', action='help', help='Show this help message and exit.')
        base.add_argument('-Q', '--quiet', action='store_true', help='Disables all log output.')
        base.add_argument('-v', '--verbose', action='count', default=0,
            help='Specify up to two times to increase log level.')
        return argp

    @classmethod
    def argparser(cls) -> PakArgumentParser:
        argp = PakArgumentParser(prog=cls.name, description=inspect.cleandoc(cls.__doc__ or ''))
        return cls._interface(argp)

    @classmethod
    def assemble(cls, *_args: str):
        """
        Creates a unit from the given command line arguments. Invalid arguments raise an
        `fspak.lib.argparser.ArgparseError`.
        """
        argp = cls.argparser()
        args = argp.parse_args(list(_args))
        try:
            unit = cls(**vars(args))
        except ValueError as E:
            argp.error(str(E))
        else:
            if args.quiet:
                unit.log_level = LogLevel.NONE
            else:
                unit.log_level = args.verbose
            return unit

    @abc.abstractmethod
    def execute(self) -> bool:
        """
        Perform the operation of this unit and return whether it was successful.
        """
        raise NotImplementedError

    @classmethod
    def run(cls, argv=None) -> None:
        """
        Implements command line execution. The process exits with status zero if and only if
        `fspak.units.Unit.execute` reports success.
        """
        argv = argv if argv is not None else sys.argv[1:]

        try:
            unit = cls.assemble(*argv)
        except ArgparseError as ap:
            ap.parser.error_commandline(str(ap))
            return
        except Exception as msg:
            cls.logger.critical(cls._output('initialization failed:', msg))
            sys.exit(1)

        loglevel = environment.verbosity.value
        if loglevel:
            unit.log_level = loglevel

        unit.console = True

        try:
            success = unit.execute()
        except KeyboardInterrupt:
            unit.logger.warning('aborting due to keyboard interrupt')
            success = False
        except Exception as E:
            unit.log_fail(E)
            success = False

        sys.exit(0 if success else 1)
