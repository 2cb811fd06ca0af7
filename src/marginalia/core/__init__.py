"""Text engine: annotation, search and segmenting of raw note content."""

from .annotate import extract_annotations, normalize_url
from .model import AnnotationSpan, MatchSpan, SearchOptions, SearchSession, TextSegment
from .search import find_matches, replace_all, replace_at
from .segments import activate, build_segments

__all__ = [
    "extract_annotations",
    "normalize_url",
    "find_matches",
    "replace_at",
    "replace_all",
    "build_segments",
    "activate",
    "AnnotationSpan",
    "MatchSpan",
    "SearchOptions",
    "SearchSession",
    "TextSegment",
]
