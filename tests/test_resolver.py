"""Tests for link resolution and backlinks."""

import tempfile
from pathlib import Path

import pytest

from marginalia.adapters.fs_storage import FsStorage
from marginalia.adapters.resolver import LinkResolver
from marginalia.adapters.yaml_codec import MarkdownNoteCodec, YamlFrontmatter
from marginalia.core.vault import Vault


@pytest.fixture
def vault():
    """Three notes linking to each other by title."""
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir)
        (path / "a.md").write_text("---\ntitle: Alpha\n---\nlinks to [[Beta]]\n")
        (path / "b.md").write_text("---\ntitle: Beta\n---\nnothing here\n")
        (path / "c.md").write_text("[[beta]] and [[Gamma]] and [[Beta]]\n")
        yield Vault(FsStorage(path), MarkdownNoteCodec(YamlFrontmatter()))


def test_resolve_by_title_case_insensitive(vault):
    resolver = LinkResolver(vault)

    assert resolver.resolve("Beta") == "b"
    assert resolver.resolve("beta") == "b"
    assert resolver.resolve("  ALPHA ") == "a"


def test_resolve_by_id(vault):
    assert LinkResolver(vault).resolve("c") == "c"


def test_resolve_unknown(vault):
    resolver = LinkResolver(vault)

    assert resolver.resolve("Gamma") is None
    assert resolver.resolve("") is None
    assert resolver.resolve("../a") is None
    assert not resolver.exists("Gamma")
    assert resolver.exists("Alpha")


def test_backlinks(vault):
    """Each linking note is listed once, in id order."""
    assert LinkResolver(vault).backlinks("Beta") == ["a", "c"]
    assert LinkResolver(vault).backlinks("Nobody") == []


def test_backlinks_are_memoised_until_invalidated(vault):
    resolver = LinkResolver(vault)
    assert resolver.backlinks("Beta") == ["a", "c"]

    vault.update_content("b", "now [[Beta]] links itself")
    assert resolver.backlinks("Beta") == ["a", "c"]

    resolver.invalidate()
    assert resolver.backlinks("Beta") == ["a", "b", "c"]


def test_backlinks_result_is_a_copy(vault):
    resolver = LinkResolver(vault)
    resolver.backlinks("Beta").append("zzz")

    assert resolver.backlinks("Beta") == ["a", "c"]
