"""
Provides a customized argument parser that is used by all `fspak.units.Unit`s.
"""
from __future__ import annotations

import os
import sys

from argparse import (
    ArgumentParser,
    RawDescriptionHelpFormatter,
)

from fspak.lib.environment import environment


def get_terminal_size(default=0):
    """
    Returns the size of the currently attached terminal. If the environment variable
    `FSPAK_TERM_SIZE` is set to an integer value, it takes prescedence. If the width of the
    terminal cannot be determined, the function returns the default.
    """
    ev_terminal_size = environment.term_size.value
    if ev_terminal_size and ev_terminal_size > 0:
        return ev_terminal_size
    width = default
    for stream in (sys.stderr, sys.stdout):
        if stream.isatty():
            try:
                width = os.get_terminal_size(stream.fileno()).columns
            except Exception:
                width = default
            else:
                break
    return default if width < 2 else width - 1


class ArgparseError(ValueError):
    """
    This custom exception type is thrown from the custom argument parser of `fspak.units.Unit`
    rather than terminating program execution immediately. The `parser` parameter is a reference
    to the argument parser that threw the original argument parsing exception with the given
    `message`.
    """
    def __init__(self, parser, message):
        self.parser = parser
        super().__init__(message)


class LineWrapRawTextHelpFormatter(RawDescriptionHelpFormatter):
    """
    The help text formatter uses the full width of the terminal and prints argument options only
    once after the long name of the option.
    """

    def __init__(self, prog, indent_increment=2, max_help_position=30, width=None):
        super().__init__(prog, indent_increment, max_help_position, width=get_terminal_size(80))

    def _format_action_invocation(self, action):
        if not action.option_strings:
            metavar, = self._metavar_formatter(action, action.dest)(1)
            return metavar
        parts = []
        if action.nargs == 0:
            parts.extend(action.option_strings)
        else:
            default = action.dest.upper()
            args_string = self._format_args(action, default)
            for option_string in action.option_strings:
                parts.append(str(option_string))
            parts[-1] += F' {args_string}'
        switches = ', '.join(parts)
        if all(opt.startswith('--') for opt in action.option_strings):
            switches = '\x20' * 4 + switches
        return switches


class PakArgumentParser(ArgumentParser):
    """
    An argument parser which raises `fspak.lib.argparser.ArgparseError` instead of exiting the
    process when the command line is invalid. Command line entry points use `error_commandline`
    to get the default behavior of printing the usage and exiting.
    """

    def __init__(self, prog=None, description=None, add_help=False):
        super().__init__(
            prog=prog,
            description=description,
            add_help=add_help,
            formatter_class=LineWrapRawTextHelpFormatter,
        )
        if sys.version_info >= (3, 14):
            self.color = False

    def error_commandline(self, message):
        super().error(message)

    def error(self, message):
        raise ArgparseError(self, message)
