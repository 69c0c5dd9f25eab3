"""
Unit tests for archive inspection and extraction.
"""

import io
import os
import stat
import threading

import pytest

from jdkcache.core.archive import (
    ArchiveExtractor,
    ArchiveInspector,
    ArchiveType,
    normalize_bundle_layout,
)
from jdkcache.core.exceptions import (
    AcquisitionCancelled,
    ArchiveFormatError,
    InsecureArchiveError,
)

posix_only = pytest.mark.skipif(os.name == "nt", reason="POSIX permissions and links")


def write(path, data):
    path.write_bytes(data)
    return path


class TestDetectType:
    """Test container detection."""

    def test_tar_gz_by_extension(self, tmp_path, jdk_tar_gz):
        """Test .tar.gz extension fast path."""
        archive = write(tmp_path / "jdk.tar.gz", jdk_tar_gz)
        assert ArchiveInspector.detect_type(archive) is ArchiveType.TAR_GZ

    def test_zip_by_extension(self, tmp_path, jdk_zip):
        """Test .zip extension fast path."""
        archive = write(tmp_path / "jdk.zip", jdk_zip)
        assert ArchiveInspector.detect_type(archive) is ArchiveType.ZIP

    def test_content_without_extension(self, tmp_path, jdk_tar_gz, jdk_zip):
        """Test detection from content when the name says nothing."""
        assert ArchiveInspector.detect_type(write(tmp_path / "a", jdk_tar_gz)) is ArchiveType.TAR_GZ
        assert ArchiveInspector.detect_type(write(tmp_path / "b", jdk_zip)) is ArchiveType.ZIP

    def test_inconsistent_extension(self, tmp_path, jdk_zip):
        """Test a zip named .tar.gz is still detected as zip."""
        archive = write(tmp_path / "jdk.tar.gz", jdk_zip)
        assert ArchiveInspector.detect_type(archive) is ArchiveType.ZIP

    def test_unrecognized(self, tmp_path):
        """Test unknown content raises ArchiveFormatError."""
        archive = write(tmp_path / "jdk.tar.gz", b"definitely not an archive")
        with pytest.raises(ArchiveFormatError, match="Unrecognized"):
            ArchiveInspector.detect_type(archive)


class TestFindRoot:
    """Test archive root detection."""

    def test_single_root(self, tmp_path, jdk_tar_gz):
        """Test common top-level directory is found with its separator."""
        archive = write(tmp_path / "jdk.tar.gz", jdk_tar_gz)
        assert ArchiveInspector.find_root(archive) == "jdk-17.0.4+8/"

    def test_dot_prefix_kept(self, tmp_path, build_tar_gz):
        """Test a leading './' is preserved."""
        archive = write(
            tmp_path / "jdk.tar.gz",
            build_tar_gz({"./": None, "./jdk/bin/java": b"x"}),
        )
        assert ArchiveInspector.find_root(archive) == "./jdk/"

    def test_last_seen_component_wins(self, tmp_path, build_zip):
        """Test the result is the root of the last entry, not the shortest."""
        archive = write(
            tmp_path / "mixed.zip",
            build_zip({"longer-root/a": b"1", "b/c": b"2", "top.txt": b"3"}),
        )
        assert ArchiveInspector.find_root(archive) == "b/"

    def test_flat_archive(self, tmp_path, build_zip):
        """Test archives without directories have no root."""
        archive = write(tmp_path / "flat.zip", build_zip({"a.txt": b"1"}))
        assert ArchiveInspector.find_root(archive) is None


class TestArchiveExtractor:
    """Test ArchiveExtractor class."""

    def test_root_stripped(self, tmp_path, build_tar_gz):
        """Test entries land relative to the archive root."""
        archive = write(
            tmp_path / "a.tar.gz",
            build_tar_gz({"root/bin/x": b"x", "root/lib/y": b"y"}),
        )
        dest = tmp_path / "out"

        count = ArchiveExtractor().extract(archive, dest, ["root"])

        assert count == 2
        assert (dest / "bin" / "x").read_bytes() == b"x"
        assert (dest / "lib" / "y").read_bytes() == b"y"
        assert not (dest / "root").exists()

    def test_zip_extraction(self, tmp_path, jdk_zip):
        """Test zip archives extract the same way."""
        archive = write(tmp_path / "jdk.zip", jdk_zip)
        dest = tmp_path / "out"

        count = ArchiveExtractor().extract(archive, dest, ["jdk-17.0.4+8/"])

        assert count == 4
        assert (dest / "bin" / "javac").exists()
        assert (dest / "release").exists()

    def test_filter_skips_other_folders(self, tmp_path, build_zip):
        """Test entries outside the requested folders are skipped."""
        archive = write(
            tmp_path / "a.zip",
            build_zip({"keep/a": b"1", "skip/b": b"2", "keepsake/c": b"3"}),
        )
        dest = tmp_path / "out"

        assert ArchiveExtractor().extract(archive, dest, ["keep"]) == 1
        assert (dest / "a").exists()
        assert not (dest / "b").exists()
        assert not (dest / "c").exists()

    def test_empty_filter_extracts_everything(self, tmp_path, build_zip):
        """Test no filter keeps the full paths."""
        archive = write(tmp_path / "a.zip", build_zip({"a/1": b"1", "b/2": b"2"}))
        dest = tmp_path / "out"

        assert ArchiveExtractor().extract(archive, dest) == 2
        assert (dest / "a" / "1").exists()
        assert (dest / "b" / "2").exists()

    def test_dot_prefixed_root(self, tmp_path, build_tar_gz):
        """Test './root/' filters match './root/...' entries."""
        archive = write(
            tmp_path / "a.tar.gz", build_tar_gz({"./root/bin/x": b"x"})
        )
        dest = tmp_path / "out"

        assert ArchiveExtractor().extract(archive, dest, ["./root/"]) == 1
        assert (dest / "bin" / "x").exists()

    def test_zero_files_is_error(self, tmp_path, jdk_tar_gz):
        """Test a wrong root guess fails instead of installing nothing."""
        archive = write(tmp_path / "jdk.tar.gz", jdk_tar_gz)
        with pytest.raises(ArchiveFormatError, match="Extracted 0 files"):
            ArchiveExtractor().extract(archive, tmp_path / "out", ["wrong-root/"])

    def test_traversal_blocked(self, tmp_path, build_tar_gz):
        """Test entries escaping the destination are rejected."""
        archive = write(tmp_path / "evil.tar.gz", build_tar_gz({"../evil": b"x"}))
        with pytest.raises(InsecureArchiveError):
            ArchiveExtractor().extract(archive, tmp_path / "out")
        assert not (tmp_path / "evil").exists()

    def test_size_mismatch(self, tmp_path):
        """Test short entry streams are a hard failure."""
        with pytest.raises(ArchiveFormatError, match="Illegal unpacked length"):
            ArchiveExtractor()._write(io.BytesIO(b"abc"), tmp_path / "f", 10, "f")

    def test_cancelled(self, tmp_path, jdk_tar_gz):
        """Test extraction honours the cancel event."""
        archive = write(tmp_path / "jdk.tar.gz", jdk_tar_gz)
        event = threading.Event()
        event.set()
        with pytest.raises(AcquisitionCancelled):
            ArchiveExtractor(cancel_event=event).extract(archive, tmp_path / "out")

    @posix_only
    def test_executable_bits(self, tmp_path, build_tar_gz):
        """Test executable names get the owner execute bit."""
        archive = write(
            tmp_path / "a.tar.gz",
            build_tar_gz(
                {
                    "r/bin/java": b"x",
                    "r/bin/run.sh": b"x",
                    "r/bin/tool.EXE": b"x",
                    "r/lib/readme.txt": b"x",
                    "r/bin/empty": b"",
                }
            ),
        )
        dest = tmp_path / "out"
        ArchiveExtractor().extract(archive, dest, ["r/"])

        def executable(path):
            return bool(path.stat().st_mode & stat.S_IXUSR)

        assert executable(dest / "bin" / "java")
        assert executable(dest / "bin" / "run.sh")
        assert executable(dest / "bin" / "tool.EXE")
        assert not executable(dest / "lib" / "readme.txt")
        assert not executable(dest / "bin" / "empty")

    @posix_only
    def test_make_executable_disabled(self, tmp_path, build_tar_gz):
        """Test executable bits are left alone when disabled."""
        archive = write(tmp_path / "a.tar.gz", build_tar_gz({"r/bin/java": b"x"}))
        dest = tmp_path / "out"
        ArchiveExtractor(make_executable=False).extract(archive, dest, ["r/"])
        assert not (dest / "bin" / "java").stat().st_mode & stat.S_IXUSR

    @posix_only
    def test_symlinks(self, tmp_path, build_tar_gz):
        """Test internal links are created and escaping links skipped."""
        archive = write(
            tmp_path / "a.tar.gz",
            build_tar_gz(
                {"r/bin/java": b"x"},
                links={"r/bin/alias": "java", "r/bin/evil": "../../../etc/passwd"},
            ),
        )
        dest = tmp_path / "out"

        assert ArchiveExtractor().extract(archive, dest, ["r/"]) == 2
        assert (dest / "bin" / "alias").is_symlink()
        assert os.readlink(dest / "bin" / "alias") == "java"
        assert not (dest / "bin" / "evil").exists()


class TestBundleLayout:
    """Test Contents/Home normalization."""

    def test_bundle_promoted(self, tmp_path, build_tar_gz):
        """Test Contents/Home becomes the extraction root."""
        archive = write(
            tmp_path / "mac.tar.gz",
            build_tar_gz(
                {
                    "jdk-17.jdk/Contents/Info.plist": b"plist",
                    "jdk-17.jdk/Contents/Home/bin/java": b"x",
                    "jdk-17.jdk/Contents/Home/release": b"r",
                }
            ),
        )
        dest = tmp_path / "out"

        ArchiveExtractor().extract(archive, dest, ["jdk-17.jdk/"])

        assert (dest / "bin" / "java").exists()
        assert (dest / "release").exists()
        assert not (dest / "Contents").exists()
        assert not (tmp_path / ".out_tmp").exists()

    def test_wrapper_without_home(self, tmp_path):
        """Test a Contents folder without Home is rejected."""
        root = tmp_path / "out"
        (root / "Contents" / "MacOS").mkdir(parents=True)
        with pytest.raises(ArchiveFormatError, match="without Home"):
            normalize_bundle_layout(root)

    def test_plain_layout_untouched(self, tmp_path):
        """Test layouts with other entries are left as they are."""
        root = tmp_path / "out"
        (root / "Contents" / "Home").mkdir(parents=True)
        (root / "bin").mkdir()
        assert normalize_bundle_layout(root) is False
        assert (root / "Contents" / "Home").is_dir()
