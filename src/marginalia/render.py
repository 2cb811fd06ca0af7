"""Terminal rendering of text segments."""

from collections.abc import Iterable

from .core.model import TextSegment

RESET = "\033[0m"
STYLES = {
    "link": "\033[4;34m",  # underlined blue
    "url": "\033[4;36m",  # underlined cyan
    "match": "\033[43m",  # yellow background
    "current": "\033[30;42m",  # black on green
}


def render_segments(segments: Iterable[TextSegment], colors: bool = True) -> str:
    """
    Render segments for a terminal.

    Link segments show their title rather than the bracket syntax. Without
    colors, matches are wrapped in [ ] and the current match in >> <<.
    """
    out = []
    for seg in segments:
        text = seg.payload if seg.tag == "link" and seg.payload is not None else seg.text
        style = STYLES.get(seg.tag)
        if style is None:
            out.append(text)
        elif colors:
            out.append(f"{style}{text}{RESET}")
        elif seg.tag == "match":
            out.append(f"[{text}]")
        elif seg.tag == "current":
            out.append(f">>{text}<<")
        else:
            out.append(text)
    return "".join(out)
