"""Link and URL annotation for raw note content."""

import re
from urllib.parse import quote, unquote

from .model import AnnotationSpan

LINK_RE = re.compile(r"\[\[(.*?)\]\]")
URL_RE = re.compile(r"https?://[^\s<>\[\]]+|www\.[^\s<>\[\]]+\.[^\s<>\[\]]+")
NOTE_LINK_PREFIX = "#note-link-"

_TRAILING_PUNCT = ".,;:!?'\""
_SCHEMES = ("http://", "https://")


def extract_annotations(content: str) -> list[AnnotationSpan]:
    """Find [[Title]] links and bare URLs in content.

    Links take priority: a URL lying inside a link's brackets is dropped.
    The result is sorted by start offset and no two spans overlap.

    Args:
        content: Raw note text

    Returns:
        Annotation spans, ascending by start
    """
    if not content:
        return []

    links = _extract_links(content)
    urls = [u for u in _extract_urls(content) if not _inside_any(u, links)]

    spans = links + urls
    spans.sort(key=lambda s: s.start)
    return spans


def _extract_links(content: str) -> list[AnnotationSpan]:
    links = []
    for m in LINK_RE.finditer(content):
        title = m.group(1)
        if not title.strip():
            continue
        links.append(AnnotationSpan(kind="link", start=m.start(), end=m.end(), payload=title))
    return links


def _extract_urls(content: str) -> list[AnnotationSpan]:
    urls = []
    for m in URL_RE.finditer(content):
        url = trim_url(m.group(0))
        if not url or url in _SCHEMES:
            continue
        start = m.start()
        urls.append(AnnotationSpan(kind="url", start=start, end=start + len(url), payload=url))
    return urls


def _inside_any(span: AnnotationSpan, links: list[AnnotationSpan]) -> bool:
    # links are sorted and disjoint; a URL cannot straddle "[[" or "]]"
    # because the URL pattern excludes brackets, so containment of the
    # start offset is enough
    for link in links:
        if link.start > span.start:
            return False
        if span.start < link.end:
            return True
    return False


def trim_url(url: str) -> str:
    """Strip punctuation that ends a sentence rather than the address.

    Trailing ``. , ; : ! ? ' "`` are removed, and a closing parenthesis is
    removed while the URL has more ``)`` than ``(``.

    Examples:
        >>> trim_url("https://example.com.")
        'https://example.com'
        >>> trim_url("https://en.wikipedia.org/wiki/Foo_(bar))")
        'https://en.wikipedia.org/wiki/Foo_(bar)'
    """
    while url:
        last = url[-1]
        if last in _TRAILING_PUNCT:
            url = url[:-1]
        elif last == ")" and url.count(")") > url.count("("):
            url = url[:-1]
        else:
            break
    return url


def is_valid_url(text: str) -> bool:
    return text.startswith(_SCHEMES) or text.startswith("www.")


def normalize_url(url: str) -> str:
    """Give protocol-less ``www.`` addresses an https scheme."""
    if url.startswith(_SCHEMES):
        return url
    if url.startswith("www."):
        return f"https://{url}"
    return url


def rewrite_links_for_markdown(content: str) -> str:
    """Turn [[Title]] into markdown links an external renderer understands.

    ``[[My Note]]`` becomes ``[My Note](#note-link-My%20Note)``; use
    note_link_title() on the rendered href to get the title back.
    """
    return LINK_RE.sub(
        lambda m: f"[{m.group(1)}]({NOTE_LINK_PREFIX}{quote(m.group(1), safe='')})"
        if m.group(1).strip()
        else m.group(0),
        content,
    )


def note_link_title(href: str) -> str | None:
    if not href.startswith(NOTE_LINK_PREFIX):
        return None
    return unquote(href[len(NOTE_LINK_PREFIX):])
