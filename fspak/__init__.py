"""
The fspak package extracts pack files: archives that use the layout of a ZIP file but protect all
of their headers and file names with a stream cipher. The package exports the extraction unit
`fspak.units.xtpak.xtpak`, which is also installed as the `xtpak` shell command, and the base
class `fspak.units.Unit`.

The library modules are the building blocks of the extraction:

1. `fspak.lib.cipher`: the pack cipher and the key schedule that locates any position in its key
   stream.
2. `fspak.lib.pak`: the record layouts, the central directory reader, and the memory mapped view of
   a pack file on disk.
3. `fspak.lib.environment`: configuration via environment variables and the logging setup.
"""
from __future__ import annotations

__version__ = '0.1.0'
__distribution__ = 'fspak'

from fspak.units import Unit
from fspak.units.xtpak import xtpak

__all__ = [
    'Unit',
    'xtpak',
]
