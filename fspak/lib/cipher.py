"""
The stream cipher that protects the metadata of a pack file. The cipher state is a single 32-bit
integer which is advanced by a truncated linear congruential step:

    state = ((0x1D * state + 0x1B) mod 2**32) mod 0x72EBCAFE

Every step yields one key byte, namely the exclusive or of the four little endian bytes of the new
state. A byte of data is transformed by combining it with the key byte via exclusive or, so the
same operation both encrypts and decrypts. All headers of a pack file and the names in its central
directory are transformed this way; the file contents are not.

The multiplication is truncated to 32 bits before the modular reduction, which means that the step
is not an affine map modulo 0x72EBCAFE and there is no shortcut to jump ahead in the key stream.
The `fspak.lib.cipher.KeySchedule` therefore remembers intermediate states at regular positions.
"""
from __future__ import annotations

import threading

from Cryptodome.Util.strxor import strxor

from fspak.lib.types import Iterable, buf

MULTIPLIER = 0x1D
INCREMENT = 0x1B
MODULUS = 0x72EBCAFE

_MASK = 0xFFFFFFFF


def step(state: int) -> int:
    """
    Compute the successor of the given cipher state.
    """
    return ((MULTIPLIER * state + INCREMENT) & _MASK) % MODULUS


def fold(state: int) -> int:
    """
    Compute the key byte for a cipher state, the exclusive or of its four bytes.
    """
    state ^= state >> 16
    state ^= state >> 8
    return state & 0xFF


def advance(state: int, count: int) -> int:
    """
    Return the cipher state that is reached after `count` steps from `state`. No key bytes are
    produced; this is equivalent to calling `fspak.lib.cipher.step` the given number of times.
    """
    if count < 0:
        raise ValueError(F'Cannot advance the cipher state by a negative count {count}.')
    m = MULTIPLIER
    a = INCREMENT
    n = MODULUS
    for _ in range(count):
        state = ((m * state + a) & _MASK) % n
    return state


class PakCipher:
    """
    Holds the state of the pack cipher. The state is advanced by exactly one step for every byte
    that is processed and it remains accessible via the `state` attribute, so the caller can use the
    same cipher object to continue with the next structure in the stream.
    """
    state: int

    def __init__(self, key: int):
        self.state = key & _MASK

    @classmethod
    def Replay(cls, key: int, count: int):
        """
        Create a cipher that starts from `key` and has already taken `count` steps.
        """
        return cls(advance(key & _MASK, count))

    def keystream(self) -> Iterable[int]:
        while True:
            self.state = state = step(self.state)
            yield fold(state)

    def skip(self, count: int) -> int:
        """
        Advance the state by `count` steps without transforming any data and return the new state.
        """
        self.state = state = advance(self.state, count)
        return state

    def process(self, data: buf) -> bytearray:
        """
        Combine the data with the next key bytes and return the result as a new buffer; the input is
        not modified.
        """
        size = len(data)
        if not size:
            return bytearray()
        m = MULTIPLIER
        a = INCREMENT
        n = MODULUS
        state = self.state
        mask = bytearray(size)
        for k in range(size):
            state = ((m * state + a) & _MASK) % n
            t = state ^ state >> 16
            mask[k] = (t ^ t >> 8) & 0xFF
        self.state = state
        output = bytearray(size)
        strxor(bytes(data), bytes(mask), output=output)
        return output

    encrypt = process
    decrypt = process


class KeySchedule:
    """
    Computes the state of the pack cipher at an arbitrary position, measured as the number of steps
    taken from the initial key. The states at multiples of `interval` are computed once and kept,
    which turns every lookup into a replay of less than `interval` steps. Each lookup still yields
    exactly the state that a replay from the initial key would produce; the schedule can be shared
    between threads.
    """
    def __init__(self, key: int, interval: int = 0x4000):
        if interval <= 0:
            raise ValueError(F'Invalid checkpoint interval {interval}.')
        self.key = key & _MASK
        self.interval = interval
        self._checkpoints = [self.key]
        self._lock = threading.Lock()

    def state(self, position: int) -> int:
        if position < 0:
            raise ValueError(F'Invalid cipher position {position}.')
        k, rest = divmod(position, self.interval)
        checkpoints = self._checkpoints
        with self._lock:
            while len(checkpoints) <= k:
                checkpoints.append(advance(checkpoints[-1], self.interval))
            state = checkpoints[k]
        return advance(state, rest)

    def cipher(self, position: int) -> PakCipher:
        """
        Return a fresh cipher whose state is the one at the given position.
        """
        return PakCipher(self.state(position))
