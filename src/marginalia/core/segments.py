"""Split raw content into plain and tagged segments for a renderer."""

from collections.abc import Sequence

from .annotate import normalize_url
from .model import AnnotationSpan, Span, TextSegment
from .ports import LinkHandler


def build_segments(
    content: str,
    spans: Sequence[Span],
    current_index: int = 0,
) -> list[TextSegment]:
    """
    Walk content once and cut it at span boundaries.

    Gaps become "plain" segments. AnnotationSpans become "link"/"url"
    segments carrying their payload. MatchSpans become "match" segments,
    except the one at position current_index - 1, which is "current".

    Joining the texts of the result always gives back content: spans that
    overlap an earlier span or run past the end are clipped. Content with
    nothing to tag, including empty content, is a single plain segment.

    Args:
        content: Raw note text
        spans: Output of extract_annotations() or find_matches()
        current_index: 1-based active match, 0 for none

    Returns:
        Ordered segments
    """
    if not content or not spans:
        return [TextSegment(text=content, tag="plain")]

    segments: list[TextSegment] = []
    cursor = 0
    size = len(content)

    for i, span in enumerate(spans):
        start = max(span.start, cursor)
        end = min(span.end, size)
        if start >= end:
            continue

        if start > cursor:
            segments.append(TextSegment(text=content[cursor:start], tag="plain", start=cursor))

        if isinstance(span, AnnotationSpan):
            tag, payload = span.kind, span.payload
        else:
            tag, payload = ("current" if i == current_index - 1 else "match"), None

        segments.append(TextSegment(text=content[start:end], tag=tag, start=start, payload=payload))
        cursor = end

    if cursor < size:
        segments.append(TextSegment(text=content[cursor:], tag="plain", start=cursor))

    return segments


def activate(segment: TextSegment, handler: LinkHandler) -> bool:
    """Dispatch a click on segment; returns False for non-clickable tags."""
    if segment.tag == "link" and segment.payload is not None:
        handler.note_link_clicked(segment.payload)
        return True
    if segment.tag == "url" and segment.payload is not None:
        handler.external_link_clicked(normalize_url(segment.payload))
        return True
    return False
