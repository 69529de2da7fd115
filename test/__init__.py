import logging
import random
import struct
import string
import tempfile
import unittest
import zlib

from pathlib import Path
from typing import NamedTuple

import fspak

from fspak.lib.cipher import PakCipher
from fspak.lib.pak import DEFAULT_KEY


__all__ = ['fspak', 'TestBase', 'PakBuilder']


class PakItem(NamedTuple):
    name: bytes
    data: bytes
    payload: bytes
    method: int
    flags: int
    usize: int
    crc32: int
    extra: bytes
    comment: bytes
    local_extra: bytes


class PakBuilder:
    """
    Creates pack files for testing. The records are encrypted in the same order in which they are
    consumed from the key stream: the end of central directory record, the central directory, and
    then the local file headers.
    """
    def __init__(self, key: int = DEFAULT_KEY):
        self.key = key
        self.items: list[PakItem] = []
        self.offsets: list[int] = []
        self.rehash: list[int] = []

    def add(
        self,
        name: str,
        data: bytes,
        compress: bool = False,
        extra: bytes = B'',
        comment: bytes = B'',
        local_extra: bytes = B'',
        usize: int | None = None,
        truncate: int = 0,
    ):
        try:
            encoded = name.encode('ascii')
        except UnicodeEncodeError:
            encoded = name.encode('utf8')
            flags = 0x0800
        else:
            flags = 0
        if compress:
            deflate = zlib.compressobj(9, zlib.DEFLATED, -15)
            payload = deflate.compress(data) + deflate.flush()
            method = 8
        else:
            payload = data
            method = 0
        if truncate:
            payload = payload[:-truncate]
        if usize is None:
            usize = len(data)
        self.items.append(PakItem(
            encoded, data, payload, method, flags, usize, zlib.crc32(data) & 0xFFFFFFFF,
            extra, comment, local_extra))
        return self

    def add_directory(self, name: str):
        self.items.append(PakItem(name.encode('ascii'), B'', B'', 0, 0, 0, 0, B'', B'', B''))
        return self

    def build(self) -> bytearray:
        directory_size = sum(
            46 + len(item.name) + len(item.extra) + len(item.comment) for item in self.items)
        body = bytearray()
        rehash = directory_size + 22
        self.offsets.clear()
        self.rehash.clear()

        for item in self.items:
            self.offsets.append(len(body))
            self.rehash.append(rehash)
            header = struct.pack(
                '<IHHHHHIIIHH', 0x04034B50, 20, item.flags, item.method, 0, 0,
                item.crc32, len(item.payload), item.usize, len(item.name), len(item.local_extra))
            cipher = PakCipher.Replay(self.key, rehash)
            body += cipher.process(header)
            body += cipher.process(item.name)
            body += item.local_extra
            body += item.payload
            rehash += len(item.name) + 30

        count = len(self.items)
        cipher = PakCipher(self.key)
        eocd = cipher.process(struct.pack(
            '<IHHHHIIH', 0x06054B50, 0, 0, count, count, directory_size, len(body), 0))
        directory = bytearray()

        for item, offset in zip(self.items, self.offsets):
            directory += cipher.process(struct.pack(
                '<IHHHHHHIIIHHHHHII', 0x02014B50, 20, 20, item.flags, item.method, 0, 0,
                item.crc32, len(item.payload), item.usize, len(item.name), len(item.extra),
                len(item.comment), 0, 0, 0, offset))
            directory += cipher.process(item.name)
            directory += item.extra
            directory += item.comment
            cipher.skip(len(item.extra) + len(item.comment))

        return body + directory + eocd


class TestBase(unittest.TestCase):

    def generate_random_buffer(self, size):
        return bytes(random.randrange(0, 0x100) for _ in range(size))

    def generate_random_text(self, size):
        return ''.join(string.printable[
            random.randrange(0, len(string.printable))] for _ in range(size)).encode('UTF8')

    def temporary_directory(self) -> Path:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        return Path(tmp.name)

    def write_archive(self, data, name='base.tntFolder') -> Path:
        path = self.temporary_directory() / name
        path.write_bytes(data)
        return path

    def setUp(self):
        random.seed(0xBAADF00D)  # guarantee deterministic 'random' buffers
        logging.disable(logging.CRITICAL)

    def tearDown(self):
        logging.disable(logging.NOTSET)
