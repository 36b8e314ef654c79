"""
Implementations of the remote record store, remote file storage and local
store interfaces.
"""

from pyrollup import rollup

from . import files, http, rest, storage
from .files import *  # noqa
from .http import *  # noqa
from .rest import *  # noqa
from .storage import *  # noqa

__all__ = rollup(rest, storage, files, http)

__canonical_children__ = [
    "rest",
    "storage",
    "files",
    "http",
]
