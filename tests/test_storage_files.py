from pathlib import Path

import pytest

from doc_relay.storage import FileStore, MalformedUpload, StoredFileNotFound, UnsafeFilename, guess_mime_type, sanitize_filename


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("report.docx", "report.docx"),
        ("../../evil.txt", "evil.txt"),
        ("sub/dir/name.txt", "name.txt"),
        ("C:\\temp\\x.docx", "x.docx"),
        ("C:x.docx", "x.docx"),
        ("/etc/passwd", "passwd"),
        ("  spaced.txt  ", "spaced.txt"),
    ],
)
def test_sanitize_filename_keeps_base_name(raw: str, expected: str) -> None:
    assert sanitize_filename(raw) == expected


@pytest.mark.parametrize("raw", ["", "   ", "dir/", "..", "a/..", "x\x00.txt", "bad..name"])
def test_sanitize_filename_rejects_empty_or_unsafe(raw: str) -> None:
    with pytest.raises(MalformedUpload):
        sanitize_filename(raw)


@pytest.mark.parametrize("name", ["..", "../etc/passwd", "a/b", "a\\b", "/etc/passwd", "C:evil", "", "x\x00"])
def test_resolve_rejects_unsafe_names(tmp_path: Path, name: str) -> None:
    store = FileStore(tmp_path / "store")
    with pytest.raises(UnsafeFilename):
        store.resolve(name)


def test_resolve_rejects_symlink_escaping_root(tmp_path: Path) -> None:
    store = FileStore(tmp_path / "store")
    outside = tmp_path / "outside.txt"
    outside.write_text("secret")
    (store.root / "link.txt").symlink_to(outside)
    with pytest.raises(UnsafeFilename):
        store.resolve("link.txt")


def test_sibling_directory_with_shared_prefix_is_outside(tmp_path: Path) -> None:
    store = FileStore(tmp_path / "store")
    sibling = tmp_path / "store-evil"
    sibling.mkdir()
    (sibling / "loot.txt").write_text("nope")
    (store.root / "loot.txt").symlink_to(sibling / "loot.txt")
    with pytest.raises(UnsafeFilename):
        store.resolve("loot.txt")


def test_save_and_read_round_trip(tmp_path: Path) -> None:
    store = FileStore(tmp_path / "store")
    stored = store.save("../../doc.bin", b"\x00\xff--boundary\r\n")
    assert stored.name == "doc.bin"
    assert stored.path == store.root / "doc.bin"
    assert stored.size == 14
    assert store.read("doc.bin") == b"\x00\xff--boundary\r\n"


def test_save_overwrites_existing_file(tmp_path: Path) -> None:
    store = FileStore(tmp_path / "store")
    store.save("a.txt", b"first version")
    store.save("a.txt", b"second")
    assert store.read("a.txt") == b"second"


def test_save_leaves_no_partial_files(tmp_path: Path) -> None:
    store = FileStore(tmp_path / "store")
    store.save("a.txt", b"data")
    assert list((store.root / ".partial").iterdir()) == []


def test_failed_commit_discards_pending(tmp_path: Path) -> None:
    store = FileStore(tmp_path / "store")
    pending = store.create_pending()
    pending.write(b"abc")
    with pytest.raises(MalformedUpload):
        store.commit(pending, "   ")
    assert not pending.path.exists()


def test_open_missing_file(tmp_path: Path) -> None:
    store = FileStore(tmp_path / "store")
    with pytest.raises(StoredFileNotFound):
        store.open("missing.pdf")


def test_open_reports_exact_size(tmp_path: Path) -> None:
    store = FileStore(tmp_path / "store")
    store.save("x.pdf", b"%PDF-1.7")
    stored, handle = store.open("x.pdf")
    with handle:
        assert stored.size == 8
        assert handle.read() == b"%PDF-1.7"


def test_guess_mime_type() -> None:
    assert guess_mime_type("a.PDF") == "application/pdf"
    assert guess_mime_type("a.docx") == "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    assert guess_mime_type("a.unknown") == "application/octet-stream"
    assert guess_mime_type("noext") == "application/octet-stream"
