import io
import re
from typing import Any

import yaml

from ..core.model import Note
from ..core.ports import FrontmatterCodec, NoteCodec

_FM = re.compile(r"^\s*---\s*\n(.*?)\n---\s*\n?", re.DOTALL)


class YamlFrontmatter(FrontmatterCodec):
    def decode(self, text: str) -> tuple[dict[str, Any], str]:
        m = _FM.match(text)
        if not m:
            return {}, text
        fm = yaml.safe_load(io.StringIO(m.group(1))) or {}
        if not isinstance(fm, dict):
            # a scalar or list is not frontmatter; keep the text as body
            return {}, text
        return fm, text[m.end():]

    def encode(self, meta: dict[str, Any]) -> str:
        if not meta:
            return ""
        buf = io.StringIO()
        yaml.safe_dump(meta, buf, sort_keys=False, allow_unicode=True)
        return f"---\n{buf.getvalue()}---\n"


class MarkdownNoteCodec(NoteCodec):
    def __init__(self, fm: YamlFrontmatter):
        self.fm = fm

    def decode_file(self, text: str, id: str) -> tuple[dict[str, Any], str]:
        return self.fm.decode(text)

    def encode_file(self, note: Note) -> str:
        # body offsets are relative to the text after the frontmatter, so the
        # frontmatter is re-emitted as-is and the body appended untouched
        return self.fm.encode(dict(note.meta)) + note.body.raw
