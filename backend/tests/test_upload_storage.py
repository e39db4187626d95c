from pathlib import Path

import pytest

from eye_memories.services.storage import UploadStorage, VariantNames, sanitize_stem


@pytest.mark.parametrize(
    "filename,expected",
    [
        ("holiday.png", "holiday"),
        ("my photo (1).JPG", "my-photo-1"),
        ("../../etc/passwd", "passwd"),
        ("C:\\Users\\me\\cat.gif", "cat"),
        ("", "image"),
        (None, "image"),
        ("..", "image"),
        ("x" * 200 + ".png", "x" * 64),
    ],
)
def test_sanitize_stem(filename, expected):
    assert sanitize_stem(filename) == expected


def test_build_filenames_uses_prefixes_and_timestamp(storage):
    names = storage.build_filenames("beach.png", 1700000000000)
    assert names == VariantNames(
        full="full-1700000000000-beach.jpg",
        thumbnail="thumb-1700000000000-beach.jpg",
    )
    assert names.full != names.thumbnail


def test_build_filenames_skips_existing_files(storage, upload_dir):
    (upload_dir / "full-1000-beach.jpg").write_bytes(b"taken")
    names = storage.build_filenames("beach.png", 1000)
    assert names.full == "full-1001-beach.jpg"
    assert names.thumbnail == "thumb-1001-beach.jpg"


def test_write_pair_stores_both_files(storage, upload_dir):
    names = storage.build_filenames("beach.png", 5)
    full_url, thumb_url = storage.write_pair(names, b"full", b"thumb")

    assert full_url == "/uploads/full-5-beach.jpg"
    assert thumb_url == "/uploads/thumb-5-beach.jpg"
    assert (upload_dir / names.full).read_bytes() == b"full"
    assert (upload_dir / names.thumbnail).read_bytes() == b"thumb"


def test_write_pair_removes_first_file_when_second_fails(storage, upload_dir):
    names = storage.build_filenames("beach.png", 5)
    (upload_dir / names.thumbnail).mkdir()

    with pytest.raises(OSError):
        storage.write_pair(names, b"full", b"thumb")

    assert not (upload_dir / names.full).exists()


def test_write_pair_creates_missing_root(tmp_path):
    storage = UploadStorage(tmp_path / "nested" / "uploads")
    storage.write_pair(VariantNames("full-1-a.jpg", "thumb-1-a.jpg"), b"f", b"t")
    assert (tmp_path / "nested" / "uploads" / "thumb-1-a.jpg").exists()


@pytest.mark.parametrize(
    "url",
    ["/uploads/../secret.jpg", "/uploads/", "/elsewhere/full-1-a.jpg", "/uploads/a/b.jpg", "", "/uploads/.."],
)
def test_path_for_url_refuses_paths_outside_root(storage, url):
    assert storage.path_for_url(url) is None


def test_remove_deletes_file_and_tolerates_missing(storage, upload_dir):
    (upload_dir / "full-1-a.jpg").write_bytes(b"x")
    assert storage.remove("/uploads/full-1-a.jpg") is True
    assert not (upload_dir / "full-1-a.jpg").exists()
    assert storage.remove("/uploads/full-1-a.jpg") is True


def test_remove_reports_unremovable_file(storage, upload_dir):
    (upload_dir / "full-1-a.jpg").mkdir()
    assert storage.remove("/uploads/full-1-a.jpg") is False
    assert storage.remove("/somewhere/else.jpg") is False


def test_write_pair_removes_partial_first_file(storage, upload_dir, monkeypatch):
    names = storage.build_filenames("beach.png", 5)

    def write_then_fail(self, data):
        with open(self, "wb") as fh:
            fh.write(data[:2])
        raise OSError("No space left on device")

    monkeypatch.setattr(Path, "write_bytes", write_then_fail)

    with pytest.raises(OSError):
        storage.write_pair(names, b"full-bytes", b"thumb-bytes")

    assert list(upload_dir.iterdir()) == []
