"""Asynchronous NoteStore over a file vault."""

import asyncio
import logging

import yaml

from ..core.model import Note, NoteId
from ..core.ports import NoteNotFoundError, NoteStore, PersistenceError
from ..core.vault import Vault

logger = logging.getLogger(__name__)


class VaultStore(NoteStore):
    """
    Fetch and update notes in a Vault without blocking the event loop.

    Read and write failures are wrapped in PersistenceError;
    a missing note raises NoteNotFoundError.
    """

    def __init__(self, vault: Vault):
        self.vault = vault

    async def fetch_note(self, id: NoteId) -> Note:
        note = await self._run(self.vault.get, id)
        if note is None:
            raise NoteNotFoundError(id)
        return note

    async def update_content(self, id: NoteId, content: str) -> Note:
        note = await self._run(self.vault.update_content, id, content)
        if note is None:
            raise NoteNotFoundError(id)
        logger.debug("Wrote %d chars to note %s", len(content), id)
        return note

    async def _run(self, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            raise PersistenceError(f"{fn.__name__} failed: {e}") from e
