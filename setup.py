#!/usr/bin/env python3
from __future__ import annotations

import re
import os
import pathlib
import setuptools

__prefix__ = os.getenv('FSPAK_PREFIX') or ''
__minver__ = '3.10'
__author__ = 'fspak contributors'
__slogan__ = 'Extract the contents of encrypted pack files.'
__topics__ = [
    'Development Status :: 3 - Alpha',
    'Operating System :: OS Independent',
    'Programming Language :: Python :: 3 :: Only',
    'Topic :: System :: Archiving',
    'Topic :: System :: Archiving :: Compression',
    'Topic :: Utilities',
]

here = pathlib.Path(__file__).parent.absolute()


def get_config():

    def get_package_variable(name: str) -> str:
        with open(here / 'fspak' / '__init__.py', 'r', encoding='UTF8') as init:
            match = re.search(RF'^{name}\s*=\s*([\'"])(.*?)\1', init.read(), re.MULTILINE)
        if match is None:
            raise LookupError(F'Unable to find {name} in the package initialization.')
        return match[2]

    def get_setup_readme(filename: str | pathlib.Path | None = None):
        if filename is None:
            filename = here / 'README.md'
        with open(filename, 'r', encoding='UTF8') as README:
            return README.read()

    def get_setup_common() -> dict:
        return dict(
            version=get_package_variable('__version__'),
            long_description=get_setup_readme(),
            author=__author__,
            description=__slogan__,
            long_description_content_type='text/markdown',
            python_requires=F'>={__minver__}',
            classifiers=__topics__,
        )

    def normalize_name(name: str, separator: str = '-'):
        return separator.join([segment for segment in name.strip('_').split('_')])

    units = {'xtpak': 'fspak.units.xtpak'}

    if __prefix__ == '!':
        console_scripts = []
    else:
        console_scripts = [
            F'{__prefix__}{normalize_name(name)}={path}:{name}.run'
            for name, path in units.items()
        ]

    config = get_setup_common()
    config.update(
        name=get_package_variable('__distribution__'),
        packages=setuptools.find_packages(include=('fspak*',)),
        install_requires=['pycryptodomex'],
        extras_require={'test': ['flake8']},
        include_package_data=True,
        entry_points={'console_scripts': console_scripts},
    )

    return config


if __name__ == '__main__':
    setuptools.setup(**get_config())
