"""
Mockzilla Scenario State Store

Key-document storage for per-scenario {state, tables} documents.

Documents are read and written whole: upsert overwrites the previous
document, there are no field-level writes. Documents are stored as JSON
text, so what a caller reads back never shares objects with what it wrote
or with other readers. A document that cannot be serialized (for example
one containing a reference cycle) raises ValueError and nothing is stored.
"""

import asyncio
import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import quote

from .models import ScenarioStateDocument

STATE_DIR_ENV_VAR = 'MOCKZILLA_STATE_DIR'


class ScenarioStateStore(ABC):
    """Interface for scenario state persistence."""

    @abstractmethod
    async def get(self, scenario_id: str) -> Optional[ScenarioStateDocument]:
        """Return the document for a scenario, or None if absent."""

    @abstractmethod
    async def upsert(self, scenario_id: str, document: ScenarioStateDocument):
        """Insert or fully overwrite the document for a scenario."""

    @abstractmethod
    async def delete(self, scenario_id: str):
        """Delete the document for a scenario (no-op if absent)."""

    async def insert_if_absent(self, scenario_id: str, document: ScenarioStateDocument) -> bool:
        """
        Insert a document only if the scenario has none.

        Returns:
            True if the document was inserted
        """
        if await self.get(scenario_id) is not None:
            return False
        await self.upsert(scenario_id, document)
        return True


class InMemoryStateStore(ScenarioStateStore):
    """Process-local store, used by default and in tests."""

    def __init__(self):
        self.documents: Dict[str, str] = {}

    async def get(self, scenario_id: str) -> Optional[ScenarioStateDocument]:
        data = self.documents.get(scenario_id)
        if data is None:
            return None
        return ScenarioStateDocument.from_dict(json.loads(data))

    async def upsert(self, scenario_id: str, document: ScenarioStateDocument):
        self.documents[scenario_id] = json.dumps(document.to_dict())

    async def delete(self, scenario_id: str):
        self.documents.pop(scenario_id, None)


class JsonFileStateStore(ScenarioStateStore):
    """
    Store each scenario document as a JSON file in a directory.

    Example:
        store = JsonFileStateStore('./.mockzilla/state')
        await store.upsert('auth-flow', ScenarioStateDocument(state={'isLoggedIn': True}))
    """

    def __init__(self, directory: Optional[str] = None):
        """
        Initialize file store.

        Args:
            directory: Directory for state files (defaults to the
                MOCKZILLA_STATE_DIR environment variable, then ./.mockzilla/state)
        """
        self.directory = Path(directory or os.environ.get(STATE_DIR_ENV_VAR) or '.mockzilla/state')

    def _path_for(self, scenario_id: str) -> Path:
        return self.directory / f"{quote(scenario_id, safe='')}.json"

    def _read(self, scenario_id: str) -> Optional[ScenarioStateDocument]:
        path = self._path_for(scenario_id)
        if not path.exists():
            return None
        with open(path, 'r', encoding='utf-8') as f:
            return ScenarioStateDocument.from_dict(json.load(f))

    def _write(self, scenario_id: str, document: ScenarioStateDocument):
        # Serialize first so a bad document never leaves a partial file behind
        text = json.dumps(document.to_dict(), indent=2)
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path_for(scenario_id)
        temp_path = path.with_suffix('.json.tmp')
        with open(temp_path, 'w', encoding='utf-8') as f:
            f.write(text)
        os.replace(temp_path, path)

    def _remove(self, scenario_id: str):
        self._path_for(scenario_id).unlink(missing_ok=True)

    async def get(self, scenario_id: str) -> Optional[ScenarioStateDocument]:
        return await asyncio.to_thread(self._read, scenario_id)

    async def upsert(self, scenario_id: str, document: ScenarioStateDocument):
        await asyncio.to_thread(self._write, scenario_id, document)

    async def delete(self, scenario_id: str):
        await asyncio.to_thread(self._remove, scenario_id)
