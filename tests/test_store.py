"""Tests for the file vault and the asynchronous VaultStore."""

import asyncio
import tempfile
from pathlib import Path

import pytest

from marginalia.adapters.fs_storage import FsStorage
from marginalia.adapters.store import VaultStore
from marginalia.adapters.yaml_codec import MarkdownNoteCodec, YamlFrontmatter
from marginalia.core.ports import NoteNotFoundError, PersistenceError
from marginalia.core.vault import Vault


@pytest.fixture
def vault_path():
    """Create a vault with a note that has frontmatter and one that has none."""
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir)
        (path / "alpha.md").write_text(
            "---\ntitle: Alpha\ntags:\n- pets\n---\nHello cat\n", encoding="utf-8"
        )
        (path / "plain.md").write_text("No frontmatter here", encoding="utf-8")
        yield path


@pytest.fixture
def vault(vault_path):
    return Vault(FsStorage(vault_path), MarkdownNoteCodec(YamlFrontmatter()))


def test_get_splits_frontmatter(vault):
    """Offsets are relative to the body, which excludes frontmatter."""
    note = vault.get("alpha")

    assert note.title == "Alpha"
    assert note.meta.get_list("tags") == ["pets"]
    assert note.content == "Hello cat\n"


def test_title_falls_back_to_id(vault):
    note = vault.get("plain")

    assert note.title == "plain"
    assert note.content == "No frontmatter here"


def test_list_ids_sorted_and_skips_hidden(vault, vault_path):
    (vault_path / ".hidden.md").write_text("x", encoding="utf-8")
    (vault_path / "notes.txt").write_text("x", encoding="utf-8")

    assert list(vault.list_ids()) == ["alpha", "plain"]


def test_update_content_keeps_frontmatter(vault, vault_path):
    updated = vault.update_content("alpha", "Hello dog\n")

    assert updated.content == "Hello dog\n"
    text = (vault_path / "alpha.md").read_text(encoding="utf-8")
    assert text.startswith("---\ntitle: Alpha\n")
    assert text.endswith("---\nHello dog\n")
    assert vault.get("alpha").title == "Alpha"


def test_update_content_missing_note(vault):
    assert vault.update_content("nope", "x") is None


def test_write_leaves_no_temp_files(vault, vault_path):
    vault.update_content("plain", "changed")

    assert sorted(p.name for p in vault_path.iterdir()) == ["alpha.md", "plain.md"]


def test_non_mapping_frontmatter_is_body():
    codec = YamlFrontmatter()
    text = "---\n- a\n- b\n---\nbody"

    assert codec.decode(text) == ({}, text)


def test_store_fetch_note(vault):
    store = VaultStore(vault)

    note = asyncio.run(store.fetch_note("alpha"))

    assert note.id == "alpha"
    assert note.content == "Hello cat\n"


def test_store_fetch_missing_note(vault):
    store = VaultStore(vault)

    with pytest.raises(NoteNotFoundError) as exc:
        asyncio.run(store.fetch_note("missing"))

    assert exc.value.id == "missing"
    assert isinstance(exc.value, PersistenceError)


def test_store_update_content(vault, vault_path):
    store = VaultStore(vault)

    note = asyncio.run(store.update_content("plain", "New body"))

    assert note.content == "New body"
    assert (vault_path / "plain.md").read_text(encoding="utf-8") == "New body"


def test_store_update_missing_note(vault):
    with pytest.raises(NoteNotFoundError):
        asyncio.run(VaultStore(vault).update_content("missing", "x"))


def test_store_wraps_yaml_errors(vault, vault_path):
    """Unreadable notes surface as PersistenceError."""
    (vault_path / "broken.md").write_text("---\nkey: [unclosed\n---\nbody", encoding="utf-8")

    with pytest.raises(PersistenceError):
        asyncio.run(VaultStore(vault).fetch_note("broken"))


def test_store_wraps_decode_errors(vault, vault_path):
    (vault_path / "binary.md").write_bytes(b"\xff\xfe\x00bad")

    with pytest.raises(PersistenceError):
        asyncio.run(VaultStore(vault).fetch_note("binary"))
