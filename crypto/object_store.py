# -*- coding: utf-8 -*-
import json
import uuid
from pathlib import Path
from typing import Any, Dict

from ku_errors import InvalidInput


class FileObjectStore:
    """Sealed KU-IBE bundles on disk, one <object_id>.json per bundle."""

    def __init__(self, root_dir: str):
        self.root_dir = Path(root_dir)
        self.root_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, object_id: str) -> Path:
        try:
            oid = uuid.UUID(object_id)
        except (ValueError, TypeError, AttributeError) as e:
            raise InvalidInput(f"malformed object_id: {object_id!r}") from e
        return self.root_dir / f"{oid}.json"

    def put(self, record: Dict[str, Any]) -> str:
        object_id = str(uuid.uuid4())
        self._path(object_id).write_text(
            json.dumps(record, ensure_ascii=False, indent=2), encoding="utf-8")
        return object_id

    def exists(self, object_id: str) -> bool:
        return self._path(object_id).exists()

    def get(self, object_id: str) -> Dict[str, Any]:
        path = self._path(object_id)
        if not path.exists():
            raise FileNotFoundError(f"bundle not found: {path}")
        return json.loads(path.read_text(encoding="utf-8"))
