from typing import Protocol, Iterable, Any
from .model import NoteId, Note


class PersistenceError(Exception):
    """Raised by a NoteStore when a note cannot be fetched or written."""


class NoteNotFoundError(PersistenceError, LookupError):
    def __init__(self, id: NoteId):
        super().__init__(f"Note {id} not found")
        self.id = id


class StorageStrategy(Protocol):
    """
    Flat store: one directory, files named <id>.md
    """

    def read_raw(self, id: NoteId) -> str | None:
        pass

    def write_raw(self, id: NoteId, contents: str) -> None:
        pass

    def list_all_ids(self) -> Iterable[NoteId]:
        pass


class FrontmatterCodec(Protocol):
    """
    Round-trip optional frontmatter without enforcing schema.
    """

    def decode(self, text: str) -> tuple[dict[str, Any], str]:
        pass

    def encode(self, meta: dict[str, Any]) -> str:
        pass


class NoteCodec(Protocol):
    """
    Compose FrontmatterCodec with raw body.
    """

    def decode_file(self, text: str, id: NoteId) -> tuple[dict[str, Any], str]:
        pass

    def encode_file(self, note: Note) -> str:
        pass


class NoteStore(Protocol):
    """
    Asynchronous persistence boundary. Failures are raised as
    PersistenceError (or a subclass) and are never reinterpreted by callers.
    """

    async def fetch_note(self, id: NoteId) -> Note:
        pass

    async def update_content(self, id: NoteId, content: str) -> Note:
        pass


class LinkHandler(Protocol):
    """Receives clicks on link and URL segments."""

    def note_link_clicked(self, title: str) -> None:
        pass

    def external_link_clicked(self, url: str) -> None:
        pass


class SpanRevealer(Protocol):
    """Scrolls/selects a character range in whatever displays the note."""

    def reveal(self, start: int, length: int) -> None:
        pass
