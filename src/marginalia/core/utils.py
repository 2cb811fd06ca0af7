"""Utility functions for marginalia."""


def char_offset_to_line(text: str, offset: int) -> int:
    """
    Convert character offset to line number (1-based).

    Args:
        text: The full text
        offset: Character offset (0-based)

    Returns:
        Line number (1-based)
    """
    if offset <= 0:
        return 1
    return text.count("\n", 0, min(offset, len(text))) + 1


def char_offset_to_column(text: str, offset: int) -> int:
    """Column (1-based) of offset within its line."""
    offset = max(0, min(offset, len(text)))
    line_start = text.rfind("\n", 0, offset) + 1
    return offset - line_start + 1


def line_at(text: str, offset: int) -> str:
    """Return the full line containing offset, without its newline."""
    offset = max(0, min(offset, len(text)))
    line_start = text.rfind("\n", 0, offset) + 1
    line_end = text.find("\n", offset)
    if line_end == -1:
        line_end = len(text)
    return text[line_start:line_end]
