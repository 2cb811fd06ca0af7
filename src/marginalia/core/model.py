from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Union

from .meta import MetaBag

NoteId = str


@dataclass(frozen=True)
class AnnotationSpan:
    kind: str  # "link" or "url"
    start: int  # char offsets into the raw content, end exclusive
    end: int
    payload: str  # link title, or the URL exactly as written

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class MatchSpan:
    start: int
    length: int  # always len(query) for one search

    @property
    def end(self) -> int:
        return self.start + self.length


Span = Union[AnnotationSpan, MatchSpan]


@dataclass(frozen=True)
class TextSegment:
    text: str
    tag: str  # "plain" | "link" | "url" | "match" | "current"
    start: int = 0
    payload: str | None = None


@dataclass(frozen=True)
class SearchOptions:
    case_sensitive: bool = False
    whole_word: bool = False


@dataclass
class SearchSession:
    query: str = ""
    options: SearchOptions = field(default_factory=SearchOptions)
    matches: list[MatchSpan] = field(default_factory=list)
    current_index: int = 0  # 1-based; 0 means no active match

    @property
    def current(self) -> MatchSpan | None:
        if self.current_index < 1 or self.current_index > len(self.matches):
            return None
        return self.matches[self.current_index - 1]


@dataclass
class NoteBody:
    raw: str


@dataclass
class Note:
    id: NoteId
    meta: MetaBag
    body: NoteBody

    @property
    def title(self) -> str:
        return self.meta.get_str("title") or self.id

    @property
    def content(self) -> str:
        return self.body.raw

    def with_content(self, content: str) -> Note:
        return replace(self, meta=MetaBag(dict(self.meta)), body=NoteBody(raw=content))
