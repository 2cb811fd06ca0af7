"""Runtime wiring helper for CLI and API applications."""

from dataclasses import dataclass
from pathlib import Path

from .adapters.fs_storage import FsStorage
from .adapters.resolver import LinkResolver
from .adapters.store import VaultStore
from .adapters.yaml_codec import MarkdownNoteCodec, YamlFrontmatter
from .cache import CachedNotes, NoteCache
from .config import MarginaliaConfig, load_config
from .core.model import SearchOptions
from .core.vault import Vault


@dataclass
class Runtime:
    """Container for all wired components; owns the process-wide note cache."""
    vault: Vault
    store: VaultStore
    notes: CachedNotes
    resolver: LinkResolver
    config: MarginaliaConfig

    @property
    def cache(self) -> NoteCache:
        return self.notes.cache

    @property
    def search_options(self) -> SearchOptions:
        return SearchOptions(
            case_sensitive=self.config.search.case_sensitive,
            whole_word=self.config.search.whole_word,
        )

    def note_changed(self, note_id: str) -> None:
        """Drop derived state after a note was written."""
        self.notes.invalidate(note_id)
        self.resolver.invalidate()


def build_runtime(
    vault_path: Path | None = None,
    config_path: Path | None = None,
) -> Runtime:
    """Build and wire all components for a vault."""
    config = load_config(config_path=config_path, vault_path=vault_path)

    if vault_path is None:
        vault_path = config.vault.root

    storage = FsStorage(vault_path)
    codec = MarkdownNoteCodec(YamlFrontmatter())
    vault = Vault(storage, codec)

    store = VaultStore(vault)
    notes = CachedNotes(store, NoteCache(config.cache.capacity))
    resolver = LinkResolver(vault, cache_capacity=config.cache.capacity)

    return Runtime(
        vault=vault,
        store=store,
        notes=notes,
        resolver=resolver,
        config=config,
    )
