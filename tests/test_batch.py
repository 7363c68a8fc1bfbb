"""Tests for the batch module."""
import pytest
from pathlib import Path
from local_subtrans.batch import (
    VIDEO_EXTS,
    expand_inputs,
    is_video_file,
    iter_video_files_in_dir,
    outputs_for,
    parse_langs,
    preflight_one,
)


class TestVideoExts:
    """Tests for VIDEO_EXTS constant."""

    def test_video_exts_common_formats(self):
        """Test that common video formats are included."""
        assert {".mp4", ".mkv", ".mov", ".webm", ".avi"}.issubset(VIDEO_EXTS)

    def test_audio_not_included(self):
        """Test that audio-only formats are not treated as videos."""
        assert ".mp3" not in VIDEO_EXTS
        assert ".wav" not in VIDEO_EXTS


class TestIsVideoFile:
    """Tests for is_video_file function."""

    def test_case_insensitive(self, tmp_path):
        """Test extension matching ignores case."""
        f = tmp_path / "CLIP.MP4"
        f.touch()
        assert is_video_file(f) is True

    def test_directory_with_video_suffix(self, tmp_path):
        """Test directories are never video files."""
        d = tmp_path / "folder.mp4"
        d.mkdir()
        assert is_video_file(d) is False


class TestIterVideoFilesInDir:
    """Tests for iter_video_files_in_dir function."""

    def test_recursive_and_sorted(self, tmp_path):
        """Test videos are found recursively in sorted order."""
        (tmp_path / "sub").mkdir()
        (tmp_path / "b.mkv").touch()
        (tmp_path / "a.mp4").touch()
        (tmp_path / "sub" / "c.mov").touch()
        (tmp_path / "notes.txt").touch()

        names = [p.name for p in iter_video_files_in_dir(tmp_path)]
        assert names == ["a.mp4", "b.mkv", "c.mov"]


class TestExpandInputs:
    """Tests for expand_inputs function."""

    def test_expand_single_file(self, tmp_path):
        """Test expanding a single file path."""
        f = tmp_path / "video.mp4"
        f.touch()
        assert expand_inputs([str(f)]) == [f]

    def test_expand_directory(self, tmp_path):
        """Test expanding a directory path."""
        (tmp_path / "one.mp4").touch()
        (tmp_path / "two.webm").touch()
        result = expand_inputs([str(tmp_path)])
        assert [p.name for p in result] == ["one.mp4", "two.webm"]

    def test_expand_glob(self, tmp_path):
        """Test expanding glob patterns."""
        (tmp_path / "x1.mp4").touch()
        (tmp_path / "x2.mp4").touch()
        (tmp_path / "y.mkv").touch()
        result = expand_inputs([str(tmp_path / "x*.mp4")])
        assert [p.name for p in result] == ["x1.mp4", "x2.mp4"]

    def test_extra_glob_pattern(self, tmp_path):
        """Test the additional glob pattern is appended."""
        f = tmp_path / "a.mp4"
        f.touch()
        (tmp_path / "b.mkv").touch()
        result = expand_inputs([str(f)], glob_pat=str(tmp_path / "*.mkv"))
        assert [p.name for p in result] == ["a.mp4", "b.mkv"]

    def test_deduplicates(self, tmp_path):
        """Test the same file given twice is returned once."""
        f = tmp_path / "video.mp4"
        f.touch()
        assert expand_inputs([str(f), str(tmp_path)]) == [f]

    def test_missing_file_kept(self, tmp_path):
        """Test missing files are passed through for preflight to report."""
        missing = tmp_path / "missing.mp4"
        assert expand_inputs([str(missing)]) == [missing]


class TestOutputsFor:
    """Tests for outputs_for function."""

    def test_next_to_video(self):
        """Test outputs go beside the video by default."""
        srt, mp4 = outputs_for(Path("/videos/talk.mkv"), None, "fr")
        assert srt == Path("/videos/talk_fr.srt")
        assert mp4 == Path("/videos/talk_fr.mp4")

    def test_outdir(self):
        """Test outputs go to the output directory when given."""
        srt, mp4 = outputs_for(Path("/videos/talk.mp4"), Path("/out"), "ja")
        assert (srt, mp4) == (Path("/out/talk_ja.srt"), Path("/out/talk_ja.mp4"))


class TestParseLangs:
    """Tests for parse_langs function."""

    def test_split_and_normalize(self):
        """Test splitting, lowercasing and trimming."""
        assert parse_langs("FR, ja ,de") == ["fr", "ja", "de"]

    def test_blanks_and_duplicates(self):
        """Test blank entries and repeats are dropped, order kept."""
        assert parse_langs("fr,,ja,fr,") == ["fr", "ja"]

    def test_empty(self):
        """Test empty input gives no languages."""
        assert parse_langs("") == []


class TestPreflightOne:
    """Tests for preflight_one function."""

    def test_preflight_success(self, tmp_path):
        """Test preflight succeeds for a valid input and free output."""
        inp = tmp_path / "in.mp4"
        inp.touch()
        assert preflight_one(inp, tmp_path / "out.srt", overwrite=False) == (True, "")

    def test_preflight_missing_input(self, tmp_path):
        """Test preflight fails for a missing input file."""
        ok, msg = preflight_one(tmp_path / "missing.mp4", tmp_path / "out.srt", overwrite=False)
        assert ok is False
        assert "Input file not found" in msg

    def test_preflight_input_is_directory(self, tmp_path):
        """Test preflight fails when the input is a directory."""
        ok, msg = preflight_one(tmp_path, tmp_path / "out.srt", overwrite=False)
        assert ok is False
        assert "directory" in msg

    def test_preflight_output_exists(self, tmp_path):
        """Test preflight fails when output exists without overwrite."""
        inp = tmp_path / "in.mp4"
        out = tmp_path / "out.srt"
        inp.touch()
        out.touch()
        ok, msg = preflight_one(inp, out, overwrite=False)
        assert ok is False
        assert "--overwrite" in msg

    def test_preflight_overwrite(self, tmp_path):
        """Test preflight succeeds for an existing output with overwrite."""
        inp = tmp_path / "in.mp4"
        out = tmp_path / "out.srt"
        inp.touch()
        out.touch()
        assert preflight_one(inp, out, overwrite=True)[0] is True

    def test_preflight_output_is_directory(self, tmp_path):
        """Test preflight fails when the output path is a directory."""
        inp = tmp_path / "in.mp4"
        inp.touch()
        out = tmp_path / "out.srt"
        out.mkdir()
        ok, msg = preflight_one(inp, out, overwrite=True)
        assert ok is False
        assert "Output path is a directory" in msg
