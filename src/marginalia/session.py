"""Find and replace session bound to one note."""

import asyncio
import logging
import secrets

from .cache import NoteCache
from .core.model import MatchSpan, Note, NoteId, SearchOptions, SearchSession, TextSegment
from .core.ports import NoteStore, SpanRevealer
from .core.search import find_matches, replace_all, replace_at
from .core.segments import build_segments

logger = logging.getLogger(__name__)

IDLE = "idle"
SEARCHING = "searching"
NAVIGATING = "navigating"
REPLACING = "replacing"


class FindReplaceController:
    """
    Owns the search session for the note currently on screen.

    Offsets are never patched after an edit: every successful replace
    rescans the new content from scratch. Callers must not start another
    operation on the same controller while replace()/replace_all() is
    awaiting the store.

    If the store raises, the exception propagates unchanged and the note
    and session are left exactly as they were before the call.
    """

    def __init__(
        self,
        note: Note,
        store: NoteStore,
        cache: NoteCache[NoteId, Note] | None = None,
        revealer: SpanRevealer | None = None,
        options: SearchOptions | None = None,
    ):
        self.note = note
        self.store = store
        self.cache = cache
        self.revealer = revealer
        self.session = SearchSession(options=options or SearchOptions())
        self.state = IDLE

    @property
    def matches(self) -> list[MatchSpan]:
        return self.session.matches

    @property
    def current_index(self) -> int:
        return self.session.current_index

    @property
    def current_match(self) -> MatchSpan | None:
        return self.session.current

    @property
    def query(self) -> str:
        return self.session.query

    @property
    def options(self) -> SearchOptions:
        return self.session.options

    def find(self, query: str, options: SearchOptions | None = None) -> list[MatchSpan]:
        self.state = SEARCHING
        if options is not None:
            self.session.options = options
        self.session.query = query
        self.session.matches = find_matches(self.note.content, query, self.session.options)
        self.session.current_index = 1 if self.session.matches else 0
        self._reveal()
        return self.session.matches

    def set_options(
        self,
        case_sensitive: bool | None = None,
        whole_word: bool | None = None,
    ) -> SearchOptions:
        current = self.session.options
        updated = SearchOptions(
            case_sensitive=current.case_sensitive if case_sensitive is None else case_sensitive,
            whole_word=current.whole_word if whole_word is None else whole_word,
        )
        self.session.options = updated
        if self.session.query and updated != current:
            self.find(self.session.query)
        return updated

    def next(self) -> int:
        count = len(self.session.matches)
        if count == 0:
            return 0
        self.state = NAVIGATING
        self.session.current_index = self.session.current_index % count + 1
        self._reveal()
        return self.session.current_index

    def previous(self) -> int:
        count = len(self.session.matches)
        if count == 0:
            return 0
        self.state = NAVIGATING
        index = self.session.current_index
        self.session.current_index = index - 1 if index > 1 else count
        self._reveal()
        return self.session.current_index

    async def replace(self, replacement: str) -> bool:
        """Replace the current match and rescan; False if there is none."""
        match = self.session.current
        if match is None:
            return False

        content = replace_at(self.note.content, match.start, match.length, replacement)
        await self._persist(content)
        self.find(self.session.query)
        return True

    async def replace_all(self, replacement: str) -> int:
        """Replace every occurrence in one write; returns how many."""
        if not self.session.query or not self.session.matches:
            return 0

        content, count = replace_all(
            self.note.content, self.session.query, self.session.options, replacement
        )
        if count == 0:
            return 0
        await self._persist(content)
        self.state = SEARCHING
        self.session.matches = []
        self.session.current_index = 0
        return count

    async def _persist(self, content: str) -> None:
        previous_state = self.state
        self.state = REPLACING
        try:
            updated = await self.store.update_content(self.note.id, content)
        except Exception:
            logger.warning("Could not save note %s; search session kept", self.note.id)
            self.state = previous_state
            raise
        self.note = updated
        if self.cache is not None:
            self.cache.invalidate(updated.id)

    def reset(self, note: Note) -> None:
        """Bind to another note; the old query and matches are dropped."""
        self.note = note
        self.session = SearchSession(options=self.session.options)
        self.state = IDLE

    def refresh(self, note: Note) -> None:
        """Adopt new content for the same note and rescan the active query.

        Navigation is kept when the content did not change, e.g. when the
        watcher reports the write this controller just made.
        """
        unchanged = note.content == self.note.content
        self.note = note
        if self.session.query and not unchanged:
            self.find(self.session.query)

    def close(self) -> None:
        self.session = SearchSession(options=self.session.options)
        self.state = IDLE

    def segments(self) -> list[TextSegment]:
        return build_segments(self.note.content, self.session.matches, self.session.current_index)

    def _reveal(self) -> None:
        match = self.session.current
        if match is not None and self.revealer is not None:
            self.revealer.reveal(match.start, match.length)


class SessionRegistry:
    """
    Open find/replace sessions, keyed by a random id.

    Each session carries an asyncio.Lock that hosts hold while running an
    operation, so two requests never interleave on the same session.
    """

    def __init__(self, nbytes: int = 8):
        self.nbytes = nbytes
        self._sessions: dict[str, tuple[FindReplaceController, asyncio.Lock]] = {}

    def open(self, controller: FindReplaceController) -> str:
        sid = secrets.token_hex(self.nbytes)
        self._sessions[sid] = (controller, asyncio.Lock())
        return sid

    def get(self, sid: str) -> tuple[FindReplaceController, asyncio.Lock] | None:
        return self._sessions.get(sid)

    def close(self, sid: str) -> bool:
        entry = self._sessions.pop(sid, None)
        if entry is None:
            return False
        entry[0].close()
        return True

    def for_note(self, note_id: NoteId) -> list[FindReplaceController]:
        return [c for c, _ in self._sessions.values() if c.note.id == note_id]

    def entries_for_note(
        self, note_id: NoteId
    ) -> list[tuple[str, FindReplaceController, asyncio.Lock]]:
        return [
            (sid, c, lock) for sid, (c, lock) in self._sessions.items() if c.note.id == note_id
        ]

    def __len__(self) -> int:
        return len(self._sessions)
