from collections.abc import Iterable

from .meta import MetaBag
from .model import Note, NoteBody, NoteId
from .ports import NoteCodec, StorageStrategy


class Vault:
    def __init__(self, storage: StorageStrategy, codec: NoteCodec):
        self.storage = storage
        self.codec = codec

    def get(self, id: NoteId) -> Note | None:
        raw = self.storage.read_raw(id)
        if raw is None:
            return None
        meta_partial, body_text = self.codec.decode_file(raw, id)
        return Note(id=id, meta=MetaBag(meta_partial), body=NoteBody(raw=body_text))

    def put(self, note: Note) -> None:
        contents = self.codec.encode_file(note)
        self.storage.write_raw(note.id, contents)

    def update_content(self, id: NoteId, content: str) -> Note | None:
        # frontmatter is kept; only the body is replaced
        note = self.get(id)
        if note is None:
            return None
        updated = note.with_content(content)
        self.put(updated)
        return updated

    def list_ids(self) -> Iterable[NoteId]:
        return self.storage.list_all_ids()

    def notes(self) -> Iterable[Note]:
        for nid in self.list_ids():
            note = self.get(nid)
            if note is not None:
                yield note
