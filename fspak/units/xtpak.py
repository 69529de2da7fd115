"""
Implements `fspak.units.xtpak.xtpak`, the unit that extracts the contents of a pack file.
"""
from __future__ import annotations

import fnmatch
import os
import re
import sys

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import NamedTuple, TextIO

from fspak.lib.argparser import PakArgumentParser
from fspak.lib.cipher import KeySchedule
from fspak.lib.environment import environment
from fspak.lib.pak import (
    DEFAULT_KEY,
    MAX_PATH,
    DecompressionError,
    FormatError,
    PakArchive,
    PakDirectory,
    PakFileEntry,
    PakFileRecord,
)
from fspak.lib.types import Iterable, buf
from fspak.units import Unit


def number(value: str) -> int:
    """
    Parse an integer literal in any base that Python supports, e.g. `0xA2A2A2A2`.
    """
    return int(value, 0)


def pathspec(expression: str) -> str:
    """
    Normalizes a path which is separated by backward or forward slashes to be separated by forward
    slashes.
    """
    return '/'.join(re.split(R'[\\\/]', expression))


class PakResult(NamedTuple):
    """
    The outcome of extracting a single file. The size is taken from the decrypted local header and
    is `None` if the header could not be read.
    """
    entry: PakFileEntry
    size: int | None
    error: Exception | None


class xtpak(Unit):
    """
    Extract files from a pack file. A pack file has the layout of a ZIP archive, but all of its
    headers and file names are encrypted with a stream cipher. The initial key of the cipher depends
    on the name of the pack file and has to be provided. Every file is written to the destination
    directory under its path within the archive, and one line of progress is printed per file.
    """
    def __init__(
        self,
        archive: str | os.PathLike,
        destination: str | os.PathLike = '.',
        patterns: Iterable[str] = (),
        key: int | None = None,
        max_path: int | None = None,
        workers: int | None = None,
        list: bool = False,
        check: bool | None = None,
        **keywords
    ):
        if key is None:
            key = environment.key.value or DEFAULT_KEY
        if max_path is None:
            max_path = environment.max_path.value or MAX_PATH
        if workers is None:
            workers = environment.workers.value or 1
        if check is None:
            check = environment.check.value
        if workers < 1:
            raise ValueError(F'The number of workers must be positive, got {workers}.')
        if max_path < 0:
            raise ValueError(F'The maximum path length cannot be negative, got {max_path}.')
        super().__init__(
            archive=archive,
            destination=destination,
            patterns=tuple(patterns),
            key=key,
            max_path=max_path,
            workers=workers,
            list=list,
            check=check,
            **keywords
        )

    @classmethod
    def _interface(cls, argp: PakArgumentParser) -> PakArgumentParser:
        argp.add_argument('archive', help='Path to the pack file.')
        argp.add_argument('destination', nargs='?', default='.',
            help='Directory that receives the extracted files; the current directory by default.')
        argp.add_argument('patterns', nargs='*', metavar='pattern', help=(
            'Wildcard pattern for the path of the files to be extracted. By default, every file '
            'is extracted.'))
        argp.add_argument('-k', '--key', type=number, default=None, help=(
            'The initial key of the cipher. The default is read from the FSPAK_KEY environment '
            F'variable, or {DEFAULT_KEY:#X} if that is not set.'))
        argp.add_argument('-m', '--max-path', dest='max_path', type=number, default=None, help=(
            'The maximum length of a file name in the central directory; a longer name means '
            F'that the archive is corrupt. The default is {MAX_PATH}.'))
        argp.add_argument('-w', '--workers', type=number, default=None,
            help='Number of threads used for extraction; files are extracted one by one by default.')
        argp.add_argument('-l', '--list', action='store_true',
            help='Only list the files in the archive, do not extract anything.')
        argp.add_argument('-c', '--check', action='store_true', default=None,
            help='Verify the CRC-32 checksum of every extracted file.')
        return super()._interface(argp)

    def _matches(self, name: str) -> bool:
        patterns = self.args.patterns
        if not patterns:
            return True
        path = pathspec(name)
        return any(fnmatch.fnmatch(path, pattern) for pattern in patterns)

    def _resolve(self, name: str) -> Path:
        parts = [part for part in re.split(R'[\\\/]', name) if part and part != '.']
        if not parts or any(part == '..' or ':' in part for part in parts):
            raise FormatError(F'Refusing to write a file with the unsafe path {name!r}.')
        return Path(self.args.destination).joinpath(*parts)

    def _dump(self, path: Path, data: buf):
        os.makedirs(path.parent, exist_ok=True)
        with path.open('wb') as stream:
            stream.write(data)
        self.log_debug(F'wrote 0x{len(data):08X} bytes to {path}')

    def _extract(self, data: buf, schedule: KeySchedule, entry: PakFileEntry) -> PakResult:
        size = None
        try:
            record = PakFileRecord.FromSchedule(data, entry, schedule)
            size = record.size
            self._dump(self._resolve(entry.name), record.unpack(self.args.check))
        except (OSError, FormatError, DecompressionError) as error:
            return PakResult(entry, size, error)
        return PakResult(entry, size, None)

    def extract(self, data: buf, directory: PakDirectory | None = None) -> Iterable[PakResult]:
        """
        Extract all files from the given pack file data whose path matches one of the patterns and
        generate one `fspak.units.xtpak.PakResult` for each of them, in the order of the central
        directory. Failing to extract a file does not affect any other file.
        """
        if directory is None:
            directory = PakDirectory(data, self.args.key, self.args.max_path)
        schedule = KeySchedule(directory.key)
        entries = [entry for entry in directory if self._matches(entry.name)]
        if self.args.workers > 1 and len(entries) > 1:
            self.log_debug(F'extracting {len(entries)} files with {self.args.workers} threads')
            with ThreadPoolExecutor(max_workers=self.args.workers) as pool:
                yield from pool.map(lambda entry: self._extract(data, schedule, entry), entries)
        else:
            for entry in entries:
                yield self._extract(data, schedule, entry)

    def execute(self, stream: TextIO | None = None) -> bool:
        out = sys.stdout if stream is None else stream
        self.log_info('opening:', str(self.args.archive))

        with PakArchive(self.args.archive) as view:
            directory = PakDirectory(view, self.args.key, self.args.max_path)
            self.log_info(F'central directory has {len(directory.records)} records for {len(directory)} files')

            if self.args.list:
                for record in directory.records:
                    if record.is_dir() or not self._matches(record.name):
                        continue
                    out.write(F'{record.name}\n')
                return True

            total = failures = 0

            for result in self.extract(view, directory):
                total += 1
                name = result.entry.name
                size = 'unknown size' if result.size is None else F'size {result.size} bytes'
                if result.error is None:
                    status = 'SUCCEEDED'
                else:
                    status = 'FAILED'
                    failures += 1
                    self.log_warn(F'failed to extract {name}:', result.error)
                out.write(F'Extracting {name} of {size}... {status}\n')
                out.flush()

        if failures:
            self.log_warn(F'{failures} of {total} files could not be extracted')
        else:
            self.log_info(F'extracted {total} files')
        return not failures
