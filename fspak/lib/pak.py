"""
Structures for unpacking pack files. A pack file uses the layout of a ZIP archive: An end of
central directory record at the very end of the file points to a central directory, whose records
in turn point to local file headers which precede the file contents. All of these records and the
file names in the central directory are encrypted with the `fspak.lib.cipher.PakCipher`; the file
contents are either stored or compressed with raw deflate, but never encrypted.

The key stream is consumed in the following order, starting from the initial key of the archive:

1. the 22 bytes of the end of central directory record,
2. the central directory; the bytes of extra fields and comments are skipped in the key stream but
   not transformed,
3. for each central directory record in turn, the local file header and the file name that follows
   it.

Hence, the cipher state for the local header of a file is determined by the size of the central
directory and the lengths of the names of all preceding records. The `fspak.lib.pak.PakDirectory`
computes this position for every file, and the header can then be decrypted independently of all
other files by replaying the key stream from the initial key.
"""
from __future__ import annotations

import codecs
import enum
import mmap
import os
import zlib

from typing import NamedTuple

from fspak.lib.cipher import KeySchedule, PakCipher
from fspak.lib.structures import FlagAccessMixin, Struct, StructReader
from fspak.lib.types import buf

DEFAULT_KEY = 0xA2A2A2A2
"""
The initial key of the pack files this module was written for. The key depends on the name of the
pack file and has to be supplied out of band for other archives.
"""

MAX_PATH = 260
"""
The default upper bound for the length of a file name in the central directory.
"""


class FormatError(ValueError):
    """
    Raised when a decrypted record does not have the expected signature or contains values which
    are out of bounds. For the end of central directory record, this usually means that the wrong
    initial key was used.
    """


class DecompressionError(ValueError):
    """
    Raised when the compressed contents of a file could not be inflated completely.
    """


class InvalidChecksum(DecompressionError):
    def __init__(self, name: str, expected: int, computed: int) -> None:
        self.name = name
        self.expected = expected
        self.computed = computed

    def __str__(self):
        return (
            F'Invalid checksum for {self.name};'
            F' computed {self.computed:08X},'
            F' expected {self.expected:08X}.')


class PakFlags(FlagAccessMixin, enum.IntFlag):
    UseUTF8             = 0x0800 # noqa


class PakEndOfDirectory(Struct):
    Signature = 0x06054B50
    Size = 22

    def __init__(self, reader: StructReader):
        self.offset = reader.tell()
        if (magic := reader.u32()) != self.Signature:
            raise FormatError(
                F'Invalid end of central directory signature {magic:08X}; the key is likely incorrect.')
        self.disk_number = reader.u16()
        self.start_disk_number = reader.u16()
        self.entries_on_disk = reader.u16()
        self.entries_in_directory = reader.u16()
        self.directory_size = reader.u32()
        self.directory_offset = reader.u32()
        self.comment_length = reader.u16()


class PakDirEntry(Struct):
    Signature = 0x02014B50
    Size = 46

    def __init__(self, reader: StructReader):
        if (magic := reader.u32()) != self.Signature:
            raise FormatError(F'Invalid central directory record signature {magic:08X}.')
        self.version_made_by = reader.u16()
        self.version_to_extract = reader.u16()
        self.flags = PakFlags(reader.u16())
        self.compression = reader.u16()
        self.mtime = reader.u16()
        self.mdate = reader.u16()
        self.crc32 = reader.u32()
        self.csize = reader.u32()
        self.usize = reader.u32()
        self.name_length = reader.u16()
        self.xtra_length = reader.u16()
        self.comment_length = reader.u16()
        self.disk_nr_start = reader.u16()
        self.internal_attributes = reader.u16()
        self.external_attributes = reader.u32()
        self.header_offset = reader.u32()
        self.name = ''

    def is_dir(self):
        return self.usize == 0


class PakFileHeader(Struct):
    Signature = 0x04034B50
    Size = 30

    def __init__(self, reader: StructReader):
        if (magic := reader.u32()) != self.Signature:
            raise FormatError(F'Invalid local file header signature {magic:08X}.')
        self.version = reader.u16()
        self.flags = PakFlags(reader.u16())
        self.compression = reader.u16()
        self.mtime = reader.u16()
        self.mdate = reader.u16()
        self.crc32 = reader.u32()
        self.csize = reader.u32()
        self.usize = reader.u32()
        self.name_length = reader.u16()
        self.xtra_length = reader.u16()


class PakFileEntry(NamedTuple):
    """
    A file that was discovered in the central directory: The offset of its local file header, the
    number of cipher steps from the initial key to the state that decrypts this header, and the
    name of the file.
    """
    offset: int
    rehash: int
    name: str


def _decode_name(data: buf, flags: PakFlags) -> str:
    """
    Decode a file name from the central directory. The name ends at the first null byte, if any.
    """
    data, _, _ = bytes(data).partition(B'\x00')
    codec = 'utf8' if flags.UseUTF8 else 'latin1'
    return codecs.decode(data, codec, 'replace')


class PakDirectory:
    """
    Reads the central directory of a pack file. The constructor decrypts the end of central
    directory record and all central directory records with one continuous cipher state that is
    discarded afterwards. The result is available as the list `entries` of extractable files; the
    list `records` contains all central directory records, including those for directories.
    """
    def __init__(self, data: buf, key: int = DEFAULT_KEY, max_path: int = MAX_PATH):
        view = memoryview(data)
        self.key = key
        self.max_path = max_path
        self.entries: list[PakFileEntry] = []
        self.records: list[PakDirEntry] = []

        if len(view) < PakEndOfDirectory.Size:
            raise FormatError(F'The input of size {len(view)} is too small to be a pack file.')

        reader = StructReader(view)
        cipher = PakCipher(key)

        try:
            reader.seekset(len(view) - PakEndOfDirectory.Size)
            self.eocd = eocd = PakEndOfDirectory.Parse(
                cipher.process(reader.read_exactly(PakEndOfDirectory.Size)))
            rehash = eocd.directory_size + PakEndOfDirectory.Size
            reader.seekset(eocd.directory_offset)

            for _ in range(eocd.entries_on_disk):
                record = PakDirEntry.Parse(cipher.process(reader.read_exactly(PakDirEntry.Size)))
                if (nl := record.name_length) > max_path:
                    raise FormatError(
                        F'Central directory record {len(self.records)} has a name of length {nl}, '
                        F'the maximum is {max_path}.')
                record.name = _decode_name(cipher.process(reader.read_exactly(nl)), record.flags)
                if not record.is_dir():
                    self.entries.append(PakFileEntry(record.header_offset, rehash, record.name))
                rehash += nl + PakFileHeader.Size
                skipped = record.xtra_length + record.comment_length
                cipher.skip(skipped)
                reader.skip(skipped)
                self.records.append(record)
        except EOFError as E:
            raise FormatError(F'The central directory is truncated: {E!s}') from E

    def __len__(self):
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)


class PakFileRecord:
    """
    The local file header of a `fspak.lib.pak.PakFileEntry` and the file contents that follow it.
    The given cipher has to be at the state for the entry's local header, which can be obtained
    from a `fspak.lib.cipher.KeySchedule` for the initial key.
    """
    def __init__(self, data: buf, entry: PakFileEntry, cipher: PakCipher):
        reader = StructReader(memoryview(data))
        self.entry = entry
        try:
            reader.seekset(entry.offset)
            self.header = header = PakFileHeader.Parse(
                cipher.process(reader.read_exactly(PakFileHeader.Size)))
            reader.skip(header.name_length + header.xtra_length)
            size = header.csize if header.compression else header.usize
            self.data = bytes(reader.read_exactly(size))
        except EOFError as E:
            raise FormatError(F'The record for {entry.name} is truncated: {E!s}') from E

    @classmethod
    def FromSchedule(cls, data: buf, entry: PakFileEntry, schedule: KeySchedule):
        return cls(data, entry, schedule.cipher(entry.rehash))

    @property
    def size(self) -> int:
        return self.header.usize

    def unpack(self, check: bool = False) -> buf:
        """
        Return the contents of the file. Compressed contents are inflated as raw deflate data and
        the stream has to end after producing exactly the expected number of bytes. If `check` is
        set, the result is verified against the CRC-32 checksum from the local header.
        """
        header = self.header
        if not header.compression:
            unpacked = self.data
        else:
            inflator = zlib.decompressobj(-15)
            try:
                unpacked = inflator.decompress(self.data, header.usize + 1)
            except zlib.error as E:
                raise DecompressionError(F'Inflating {self.entry.name} failed: {E!s}') from E
            if not inflator.eof:
                raise DecompressionError(F'The deflate stream for {self.entry.name} did not terminate.')
            if (n := len(unpacked)) != header.usize:
                raise DecompressionError(
                    F'Inflating {self.entry.name} produced {n} bytes, expected {header.usize}.')
        if check and (crc32 := zlib.crc32(unpacked) & 0xFFFFFFFF) != header.crc32:
            raise InvalidChecksum(self.entry.name, header.crc32, crc32)
        return unpacked


class PakArchive:
    """
    A read-only view of a pack file on disk. Used as a context manager, it memory maps the file and
    returns a `memoryview` of its contents. The file is closed when the context ends; the mapping
    itself is released as soon as no view of it remains.
    """
    def __init__(self, path: str | os.PathLike):
        self.path = path
        self._file = None
        self._mmap = None

    def __enter__(self) -> memoryview:
        self._file = fd = open(self.path, 'rb')
        try:
            if os.fstat(fd.fileno()).st_size == 0:
                return memoryview(B'')
            self._mmap = mapped = mmap.mmap(fd.fileno(), 0, access=mmap.ACCESS_READ)
        except Exception:
            fd.close()
            self._file = None
            raise
        return memoryview(mapped)

    def __exit__(self, *args):
        self._mmap = None
        if self._file is not None:
            self._file.close()
            self._file = None
        return False
