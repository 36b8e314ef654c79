"""
Local store backed by a directory of JSON files.
"""

from __future__ import annotations

import json
import logging
import os
import re
from logging import Logger
from pathlib import Path
from typing import Any

from ..core.exceptions import LogicError
from ..core.store import LocalStore

__all__ = [
    "FileLocalStore",
]

_SAFE_NAME = re.compile(r"^[A-Za-z0-9._@-]+$")


class FileLocalStore(LocalStore):
    """
    Implements {obj}`LocalStore` as files under a data directory:

    ```
    <root>/
        data/<owner>.json
        data/deletedIds_<owner>.json
        data/suppressed_<owner>.json
        documents/meta/<document id>.json
        documents/files/<document id>
    ```

    Unreadable JSON files are treated as absent and logged.
    """

    root: Path
    _logger: Logger

    def __init__(self, root: Path | str, *, logger: Logger | None = None):
        self.root = Path(root)
        self._logger = logger or logging.getLogger()

        for folder in (self._data_dir, self._meta_dir, self._files_dir):
            folder.mkdir(parents=True, exist_ok=True)

    def load_data(self, owner_id: str) -> Any | None:
        return self._read_json(self._data_dir / f"{_name(owner_id)}.json")

    def save_data(self, owner_id: str, data: dict[str, Any]):
        self._write_json(self._data_dir / f"{_name(owner_id)}.json", data)

    def load_deleted_ids(self, owner_id: str) -> Any | None:
        return self._read_json(
            self._data_dir / f"deletedIds_{_name(owner_id)}.json"
        )

    def save_deleted_ids(self, owner_id: str, deleted_ids: dict[str, Any]):
        self._write_json(
            self._data_dir / f"deletedIds_{_name(owner_id)}.json", deleted_ids
        )

    def load_suppressed(self, owner_id: str) -> list[str] | None:
        value = self._read_json(
            self._data_dir / f"suppressed_{_name(owner_id)}.json"
        )

        if value is None:
            return None

        if not isinstance(value, list):
            self._logger.warning(
                f"Discarding malformed suppressed documents: {value!r}"
            )
            return None

        return [str(i) for i in value]

    def save_suppressed(self, owner_id: str, document_ids: list[str]):
        self._write_json(
            self._data_dir / f"suppressed_{_name(owner_id)}.json",
            document_ids,
        )

    def get_document_meta(self, document_id: str) -> dict[str, Any] | None:
        value = self._read_json(self._meta_dir / f"{_name(document_id)}.json")
        return value if isinstance(value, dict) else None

    def put_document_meta(self, document_id: str, meta: dict[str, Any]):
        self._write_json(self._meta_dir / f"{_name(document_id)}.json", meta)

    def get_document_file(self, document_id: str) -> bytes | None:
        path = self._files_dir / _name(document_id)
        return path.read_bytes() if path.is_file() else None

    def put_document_file(self, document_id: str, data: bytes):
        _write_atomic(self._files_dir / _name(document_id), data)

    def delete_document(self, document_id: str):
        name = _name(document_id)
        (self._meta_dir / f"{name}.json").unlink(missing_ok=True)
        (self._files_dir / name).unlink(missing_ok=True)

    @property
    def _data_dir(self) -> Path:
        return self.root / "data"

    @property
    def _meta_dir(self) -> Path:
        return self.root / "documents" / "meta"

    @property
    def _files_dir(self) -> Path:
        return self.root / "documents" / "files"

    def _read_json(self, path: Path) -> Any | None:
        if not path.is_file():
            return None

        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (ValueError, UnicodeDecodeError) as e:
            self._logger.warning(f"Ignoring unreadable file {path}: {e}")
            return None

    def _write_json(self, path: Path, value: Any):
        _write_atomic(
            path, json.dumps(value, ensure_ascii=False, indent=2).encode()
        )


def _name(key: str) -> str:
    """
    Validate key for use as a filename.
    """
    if not _SAFE_NAME.match(key) or key in (".", ".."):
        raise LogicError(f"Invalid key for local storage: {key!r}")
    return key


def _write_atomic(path: Path, data: bytes):
    """
    Write file contents such that readers never observe a partial write.
    """
    tmp = path.with_name(f".{path.name}.tmp")
    tmp.write_bytes(data)
    os.replace(tmp, path)
