from typing import MutableMapping, Iterator, Any


class MetaBag(MutableMapping[str, Any]):
    """
    Free-form frontmatter of a note, e.g.,
    - "title": "Covariant derivative"
    - "tags": ["math", "geometry"]
    Nothing in the engine requires a key; "title" is only used to resolve
    [[Title]] links and falls back to the note id.
    """

    def __init__(self, initial: dict | None = None):
        self._d = dict(initial or {})

    # MutableMapping interface
    def __getitem__(self, k: str) -> Any:
        return self._d[k]

    def __setitem__(self, k: str, v: Any) -> None:
        self._d[k] = v

    def __delitem__(self, k: str) -> None:
        del self._d[k]

    def __iter__(self) -> Iterator[str]:
        return iter(self._d)

    def __len__(self) -> int:
        return len(self._d)

    def __repr__(self) -> str:
        return f"MetaBag({self._d!r})"

    # Convenience
    def get_str(self, key: str, default: str | None = None) -> str | None:
        v = self._d.get(key, default)
        return v if isinstance(v, str) and v.strip() else default

    def get_list(self, key: str) -> list[str]:
        v = self._d.get(key)
        if isinstance(v, str):
            return [v]
        if isinstance(v, (list, tuple)):
            return [str(item) for item in v]
        return []
