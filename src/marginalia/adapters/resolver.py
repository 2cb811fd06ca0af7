from ..cache import NoteCache
from ..core.annotate import extract_annotations
from ..core.model import NoteId
from ..core.vault import Vault


class LinkResolver:
    """
    Resolve [[Title]] links against a vault.

    A link title matches a note whose "title" (case-insensitive) or id equals
    it. Backlink lookups scan the whole vault, so results are memoised per
    title; call invalidate() after any write.
    """

    def __init__(self, vault: Vault, cache_capacity: int = 20):
        self.vault = vault
        self._backlinks: NoteCache[str, list[NoteId]] = NoteCache(cache_capacity)

    def resolve(self, title: str) -> NoteId | None:
        wanted = title.strip()
        if not wanted:
            return None
        if wanted in set(self.vault.list_ids()):
            return wanted
        folded = wanted.casefold()
        for note in self.vault.notes():
            if note.title.strip().casefold() == folded:
                return note.id
        return None

    def exists(self, title: str) -> bool:
        return self.resolve(title) is not None

    def backlinks(self, title: str) -> list[NoteId]:
        key = title.strip().casefold()
        cached = self._backlinks.get(key)
        if cached is not None:
            return list(cached)

        hits = []
        for note in self.vault.notes():
            for span in extract_annotations(note.content):
                if span.kind == "link" and span.payload.strip().casefold() == key:
                    hits.append(note.id)
                    break
        self._backlinks.put(key, hits)
        return list(hits)

    def invalidate(self) -> None:
        self._backlinks.clear()
