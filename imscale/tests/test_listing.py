import os
from datetime import UTC, datetime
from pathlib import Path

import pytest

from imscale.services.listing import describe_file, entry_modified, entry_type, list_directory
from imscale.services.path_resolver import PathResolver

FIXED_NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)


@pytest.fixture
def resolver(image_root: Path) -> PathResolver:
    return PathResolver(image_root)


class TestEntryType:
    @pytest.mark.parametrize("name", ["a.jpg", "a.JPEG", "a.png", "a.gif", "a.bmp", "a.ico", "a.tiff", "a.WebP", "a.avif"])
    def test_image_extensions(self, name: str) -> None:
        assert entry_type(name, False) == "image"

    @pytest.mark.parametrize("name", ["notes.txt", "Makefile", "a.tif", "archive.png.zip"])
    def test_other_files(self, name: str) -> None:
        assert entry_type(name, False) == "file"

    def test_directories_win_over_extension(self) -> None:
        assert entry_type("album.png", True) == "directory"


class TestEntryModified:
    def test_uses_mtime_in_utc(self, tmp_path: Path) -> None:
        f = tmp_path / "f"
        f.write_text("x")
        os.utime(f, (1_700_000_000, 1_700_000_000))
        assert entry_modified(f.stat(), FIXED_NOW) == datetime.fromtimestamp(1_700_000_000, UTC)

    def test_unrepresentable_mtime_uses_default(self) -> None:
        stat = os.stat_result((0, 0, 0, 0, 0, 0, 0, 0, 10**20, 0))
        assert entry_modified(stat, FIXED_NOW) == FIXED_NOW


class TestListDirectory:
    def test_mixed_directory(self, resolver: PathResolver, image_root: Path, make_image) -> None:
        make_image("a.png")
        (image_root / "notes.txt").write_text("hello")
        (image_root / "sub").mkdir()
        make_image(".hidden.png")

        entries = list_directory(resolver.resolve(""), now=FIXED_NOW)

        assert {(e.name, e.type) for e in entries} == {
            ("a.png", "image"),
            ("notes.txt", "file"),
            ("sub", "directory"),
        }

    def test_sorted_directories_first_then_name(self, resolver: PathResolver, image_root: Path) -> None:
        (image_root / "b.txt").write_text("b")
        (image_root / "A.txt").write_text("a")
        (image_root / "z_dir").mkdir()
        (image_root / "a_dir").mkdir()

        names = [e.name for e in list_directory(resolver.resolve(""))]

        assert names == ["a_dir", "z_dir", "A.txt", "b.txt"]

    def test_size_and_modified(self, resolver: PathResolver, image_root: Path) -> None:
        f = image_root / "notes.txt"
        f.write_text("hello")
        os.utime(f, (1_600_000_000, 1_600_000_000))

        [entry] = list_directory(resolver.resolve(""))

        assert entry.size == 5
        assert entry.modified == datetime.fromtimestamp(1_600_000_000, UTC)

    def test_dangling_symlink_is_skipped(self, resolver: PathResolver, image_root: Path) -> None:
        (image_root / "keep.txt").write_text("x")
        (image_root / "broken").symlink_to(image_root / "nowhere")

        names = [e.name for e in list_directory(resolver.resolve(""))]

        assert names == ["keep.txt"]

    def test_empty_directory(self, resolver: PathResolver) -> None:
        assert list_directory(resolver.resolve("")) == []


class TestDescribeFile:
    def test_image_detail(self, resolver: PathResolver, make_image) -> None:
        make_image("sub/photo.jpg", size=(320, 240), fmt="JPEG")

        detail = describe_file(resolver.resolve("sub/photo.jpg"))

        assert detail.name == "photo.jpg"
        assert detail.type == "image"
        assert (detail.width, detail.height) == (320, 240)
        assert detail.download_url == "/download/sub/photo.jpg"
        assert detail.size > 0

    def test_unreadable_image_reports_zero_dimensions(self, resolver: PathResolver, image_root: Path) -> None:
        (image_root / "broken.png").write_bytes(b"definitely not a png")

        detail = describe_file(resolver.resolve("broken.png"))

        assert detail.type == "image"
        assert (detail.width, detail.height) == (0, 0)

    def test_plain_file(self, resolver: PathResolver, image_root: Path) -> None:
        (image_root / "notes.txt").write_text("hello")

        detail = describe_file(resolver.resolve("notes.txt"))

        assert detail.type == "file"
        assert (detail.width, detail.height) == (0, 0)

    def test_special_file_reports_zero_dimensions(self, resolver: PathResolver, image_root: Path) -> None:
        os.mkfifo(image_root / "pipe.png")

        detail = describe_file(resolver.resolve("pipe.png"))

        assert detail.type == "image"
        assert (detail.width, detail.height) == (0, 0)

    def test_download_url_is_percent_encoded(self, resolver: PathResolver, make_image) -> None:
        make_image("summer trip/a%41.png")

        detail = describe_file(resolver.resolve("summer trip/a%41.png"))

        assert detail.download_url == "/download/summer%20trip/a%2541.png"
