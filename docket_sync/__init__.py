"""
DocketSync: local-first sync engine and CLI for case management data.
"""

from pyrollup import rollup

from . import core, drivers
from .core import *  # noqa
from .drivers import *  # noqa

__all__ = rollup(core, drivers)

__canonical_children__ = [
    "core",
    "drivers",
]
