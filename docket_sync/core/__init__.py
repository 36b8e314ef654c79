"""
This module implements the reconciliation engine: flattening of the nested
data graph, application of the deletion log, per-table merge and the sync
orchestrator.
"""

from pyrollup import rollup

from . import (
    deletions,
    documents,
    exceptions,
    flat,
    merge,
    messages,
    model,
    orphans,
    store,
    sync,
    tables,
    workspace,
)
from .deletions import *  # noqa
from .documents import *  # noqa
from .exceptions import *  # noqa
from .flat import *  # noqa
from .merge import *  # noqa
from .messages import *  # noqa
from .model import *  # noqa
from .orphans import *  # noqa
from .store import *  # noqa
from .sync import *  # noqa
from .tables import *  # noqa
from .workspace import *  # noqa

__all__ = rollup(
    sync,
    workspace,
    model,
    tables,
    flat,
    deletions,
    merge,
    orphans,
    documents,
    store,
    messages,
    exceptions,
)

__canonical_children__ = [
    "sync",
    "workspace",
    "model",
    "tables",
    "flat",
    "deletions",
    "merge",
    "orphans",
    "documents",
    "store",
    "messages",
    "exceptions",
]
