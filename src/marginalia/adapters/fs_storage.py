import os
from pathlib import Path
from typing import Iterable
from ..core.ports import StorageStrategy


class FsStorage(StorageStrategy):
    def __init__(self, root: Path, suffix: str = ".md"):
        self.root = root
        self.suffix = suffix

    def path(self, id: str) -> Path:
        return self.root / f"{id}{self.suffix}"

    def id_for(self, path: Path) -> str | None:
        if path.suffix != self.suffix or path.name.startswith("."):
            return None
        return path.stem

    def read_raw(self, id: str) -> str | None:
        p = self.path(id)
        return p.read_text(encoding="utf-8") if p.exists() else None

    def write_raw(self, id: str, contents: str) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        # write-then-rename so a watcher never sees a half-written note
        p = self.path(id)
        tmp = p.with_name(f".{p.name}.tmp")
        tmp.write_text(contents, encoding="utf-8")
        os.replace(tmp, p)

    def list_all_ids(self) -> Iterable[str]:
        if not self.root.exists():
            return []
        return sorted(p.stem for p in self.root.glob(f"*{self.suffix}") if not p.name.startswith("."))
