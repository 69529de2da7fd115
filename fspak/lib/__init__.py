"""
Library modules used by the `fspak.units`: the pack cipher, the structure readers, the record
layouts of the pack format, and the configuration and argument parsing helpers.
"""
