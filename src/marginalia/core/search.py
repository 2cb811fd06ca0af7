"""Literal find and replace over raw note content."""

import re

from .model import MatchSpan, SearchOptions


def compile_query(query: str, options: SearchOptions) -> re.Pattern[str]:
    """
    Build the pattern used for both finding and replacing.

    The query is always escaped, so users never get regex semantics. With
    whole_word, the match must not touch a word character on either side,
    which also behaves sensibly for queries that start or end with
    punctuation (e.g. "c++").
    """
    pattern = re.escape(query)
    if options.whole_word:
        pattern = rf"(?<!\w){pattern}(?!\w)"
    flags = 0 if options.case_sensitive else re.IGNORECASE
    return re.compile(pattern, flags)


def find_matches(
    content: str,
    query: str,
    options: SearchOptions | None = None,
) -> list[MatchSpan]:
    """
    Find every occurrence of query in content.

    Scanning is left to right and non-overlapping: "aaaa" contains two
    matches of "aa", at 0 and 2.

    Args:
        content: Raw note text
        query: Literal text to look for; empty or blank yields no matches
        options: Case and whole-word switches

    Returns:
        Matches sorted by start offset, each query-length long
    """
    if not content or not query or not query.strip():
        return []
    regex = compile_query(query, options or SearchOptions())
    length = len(query)
    return [MatchSpan(start=m.start(), length=length) for m in regex.finditer(content)]


def replace_at(content: str, start: int, length: int, replacement: str) -> str:
    return content[:start] + replacement + content[start + length:]


def replace_all(
    content: str,
    query: str,
    options: SearchOptions | None,
    replacement: str,
) -> tuple[str, int]:
    """Replace every match of query; the replacement is inserted verbatim."""
    if not content or not query or not query.strip():
        return content, 0
    regex = compile_query(query, options or SearchOptions())
    return regex.subn(lambda _m: replacement, content)
