import pytest

from notion_vault_sync.remote.errors import ValidationError
from notion_vault_sync.sync.differ import SyncDiffer
from notion_vault_sync.sync.mapper import decode_title, display_name, encode_title, validate_path
from notion_vault_sync.sync.state import RemoteIdCache, compute_content_hash


def test_encode_title():
    assert encode_title("projects/x.md") == "projects/x.md:x"
    assert display_name("projects/x.md") == "x"


def test_decode_title():
    assert decode_title("projects/x.md:x") == ("projects/x.md", "x")


@pytest.mark.parametrize("title", ["notitle", ":x", ""])
def test_decode_title_rejects_titles_without_path(title):
    with pytest.raises(ValidationError):
        decode_title(title)


@pytest.mark.parametrize("path", ["a.txt", "a?.md", "a:b.md", "../a.md", "/abs.md", "a\\b.md"])
def test_validate_path_rejects(path):
    with pytest.raises(ValidationError):
        validate_path(path)


def test_validate_path_accepts_nested_paths():
    assert validate_path("deep/dir/a b.md") == "deep/dir/a b.md"


def test_content_hash_is_exact():
    assert compute_content_hash("") == (
        "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
    )
    assert compute_content_hash("a\r\n") != compute_content_hash("a\n")


LONG_TEXT = "lorem ipsum dolor sit amet\n" * 40_000

HASH_CORPUS = [
    "",
    " ",
    "\n",
    "a",
    "b",
    "ab",
    "ba",
    "# Title\n- one\n- two\n",
    "# Title\n- two\n- one\n",
    "# Title\n- one\n- two",
    "caf\u00e9",
    "cafe\u0301",
    "日本語のノート",
    "emoji 🎉 note",
    "emoji 🎊 note",
    LONG_TEXT,
    LONG_TEXT[:-1] + "!",
    "x" + LONG_TEXT[1:],
    LONG_TEXT + "a",
]


@pytest.mark.parametrize("text", HASH_CORPUS, ids=range(len(HASH_CORPUS)))
def test_content_hash_is_deterministic(text):
    assert compute_content_hash(text) == compute_content_hash(str(text))
    assert len(compute_content_hash(text)) == 64


def test_content_hash_has_no_collisions_in_corpus():
    assert len(set(HASH_CORPUS)) == len(HASH_CORPUS)
    digests = {compute_content_hash(text) for text in HASH_CORPUS}
    assert len(digests) == len(HASH_CORPUS)


def test_content_hash_sees_every_single_character_edit():
    base = "The quick brown fox jumps over the lazy dog. ünïcödé ✓\n" * 50
    variants = {base[:i] + "#" + base[i + 1 :] for i in range(0, len(base), 7)}
    variants.discard(base)
    digests = {compute_content_hash(text) for text in variants}
    assert compute_content_hash(base) not in digests
    assert len(digests) == len(variants)


def test_cache_bind_replaces_both_directions():
    cache = RemoteIdCache()
    cache.bind("a.md", "p1")
    cache.bind("b.md", "p1")
    assert cache.remote_id_for("a.md") is None
    assert cache.path_for("p1") == "b.md"

    cache.bind("b.md", "p2")
    assert cache.remote_ids() == {"p2"}
    assert len(cache) == 1

    cache.unbind_id("p2")
    assert len(cache) == 0


def test_diff_goes_from_remote_to_local():
    diff = SyncDiffer.compute_diff("local line\n", "remote line\n", "a.md")
    assert "--- remote (Notion) a.md" in diff
    assert "+++ local (vault) a.md" in diff
    assert "-remote line" in diff
    assert "+local line" in diff
    assert SyncDiffer.compute_diff("same", "same\r\n") == ""
