"""
Record schema: one model per table, the nested data graph and the
pending-deletion set.
"""

from pyrollup import rollup

from . import base, graph, records
from .base import *  # noqa
from .graph import *  # noqa
from .records import *  # noqa

__all__ = rollup(base, records, graph)

__canonical_children__ = [
    "base",
    "records",
    "graph",
]
