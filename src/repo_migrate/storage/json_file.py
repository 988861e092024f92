"""JSON file backed migration registry."""

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict

from ..models.migration import MigrationCredentials, MigrationRecord
from .in_memory import InMemoryMigrationStore


class JsonFileMigrationStore(InMemoryMigrationStore):
    """Registry persisted to a single JSON document.

    Layout::

        {
          "next_id": 3,
          "migrations": {
            "1": {"record": {...}, "credentials": {"source": "...", "target": "..."}}
          }
        }

    Credentials are written in their encrypted form only. The whole file is
    rewritten through a temporary file and renamed into place on each change.
    The write runs in a worker thread; the store lock stays held until it
    lands, so writes never interleave.
    """

    def __init__(self, path: str):
        """Initialize JSON file store.

        Args:
            path: Store file; created on first write if missing
        """
        super().__init__()
        self.path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return

        with open(self.path, 'r', encoding='utf-8') as f:
            document = json.load(f)

        for key, entry in document.get('migrations', {}).items():
            record = MigrationRecord(**entry['record'])
            self._records[record.id] = record
            self._credentials[record.id] = MigrationCredentials(**entry['credentials'])

        highest = max(self._records, default=0)
        self._next_id = max(int(document.get('next_id', 1)), highest + 1)
        self.logger.info(f'Loaded {len(self._records)} migrations from {self.path}')

    def _document(self) -> Dict[str, Any]:
        return {
            'next_id': self._next_id,
            'migrations': {
                str(migration_id): {
                    'record': record.to_public_dict(),
                    'credentials': self._credentials[migration_id].dict(),
                }
                for migration_id, record in self._records.items()
            },
        }

    async def _persist(self) -> None:
        document = self._document()
        await asyncio.to_thread(self._write, document)

    def _write(self, document: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            prefix=f'.{self.path.name}.', dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(document, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
