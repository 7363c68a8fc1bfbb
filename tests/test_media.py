"""Tests for the media module."""
import subprocess
import pytest
from pathlib import Path
from unittest.mock import patch
from local_subtrans.media import (
    audio_extract_cmd,
    embed_subtitles,
    embed_subtitles_cmd,
    escape_filter_path,
    extract_audio,
    extract_audio_with_tempo,
    ffmpeg_ok,
)


class TestFfmpegOk:
    """Tests for ffmpeg_ok function."""

    @patch('local_subtrans.media.binary_ok')
    def test_custom_binary(self, mock_ok):
        """Test the configured binary name is checked."""
        mock_ok.return_value = True
        assert ffmpeg_ok("/opt/ffmpeg/bin/ffmpeg") is True
        mock_ok.assert_called_once_with("/opt/ffmpeg/bin/ffmpeg")


class TestAudioExtractCmd:
    """Tests for audio_extract_cmd function."""

    def test_plain_extraction(self):
        """Test 16kHz mono PCM without a tempo filter."""
        cmd = audio_extract_cmd("in.mp4", "out.wav")
        assert cmd[0] == "ffmpeg"
        assert cmd[-1] == "out.wav"
        assert ["-ar", "16000"] == cmd[cmd.index("-ar"):cmd.index("-ar") + 2]
        assert ["-ac", "1"] == cmd[cmd.index("-ac"):cmd.index("-ac") + 2]
        assert "pcm_s16le" in cmd
        assert "-af" not in cmd

    def test_tempo_filter(self):
        """Test atempo factor from a tempo percentage."""
        cmd = audio_extract_cmd("in.mp4", "out.wav", tempo_percent=90)
        assert cmd[cmd.index("-af") + 1] == "atempo=0.9"

    def test_neutral_tempo_has_no_filter(self):
        """Test tempo 100 adds no filter."""
        assert "-af" not in audio_extract_cmd("in.mp4", "out.wav", tempo_percent=100)

    def test_custom_binary(self):
        """Test the ffmpeg binary is configurable."""
        assert audio_extract_cmd("a", "b", ffmpeg_bin="/x/ffmpeg")[0] == "/x/ffmpeg"


class TestExtractAudio:
    """Tests for extract_audio and extract_audio_with_tempo."""

    @patch('local_subtrans.media.run_checked')
    def test_extract_audio_creates_parent(self, mock_run, tmp_path):
        """Test the output directory is created and ffmpeg is run."""
        out = tmp_path / "nested" / "a.wav"
        extract_audio(Path("in.mp4"), out)
        assert out.parent.is_dir()
        assert mock_run.call_args.args[0][-1] == str(out)

    @patch('local_subtrans.media.run_checked')
    def test_failure_propagates(self, mock_run, tmp_path):
        """Test ffmpeg failures are raised to the caller."""
        mock_run.side_effect = subprocess.CalledProcessError(1, ["ffmpeg"], stderr="bad input")
        with pytest.raises(subprocess.CalledProcessError):
            extract_audio(Path("in.mp4"), tmp_path / "a.wav")

    @patch('local_subtrans.media.run_checked')
    def test_tempo(self, mock_run, tmp_path):
        """Test the tempo variant passes the atempo filter."""
        extract_audio_with_tempo(Path("in.wav"), tmp_path / "t.wav", 110)
        cmd = mock_run.call_args.args[0]
        assert cmd[cmd.index("-af") + 1] == "atempo=1.1"

    @patch('local_subtrans.media.run_checked')
    def test_tempo_out_of_range(self, mock_run, tmp_path):
        """Test tempos ffmpeg cannot apply are rejected before running it."""
        with pytest.raises(ValueError):
            extract_audio_with_tempo(Path("in.wav"), tmp_path / "t.wav", 40)
        mock_run.assert_not_called()


class TestEmbedSubtitles:
    """Tests for subtitle embedding."""

    def test_escape_filter_path(self):
        """Test characters special to ffmpeg filters are escaped."""
        assert escape_filter_path("C:\\subs\\it's,x.srt") == "C\\:/subs/it\\'s\\,x.srt"

    def test_cmd(self):
        """Test the burn-in command layout."""
        cmd = embed_subtitles_cmd("v.mp4", "s.srt", "o.mp4", extra_options=["-crf", "20"])
        assert cmd[cmd.index("-vf") + 1] == "subtitles=s.srt"
        assert cmd[-3:] == ["-crf", "20", "o.mp4"]

    @patch('local_subtrans.media.run_checked')
    def test_missing_srt(self, mock_run, tmp_path):
        """Test a missing subtitle file is reported before ffmpeg runs."""
        with pytest.raises(FileNotFoundError):
            embed_subtitles(tmp_path / "v.mp4", tmp_path / "missing.srt", tmp_path / "o.mp4")
        mock_run.assert_not_called()

    @patch('local_subtrans.media.run_checked')
    def test_runs_ffmpeg(self, mock_run, tmp_path):
        """Test ffmpeg is invoked with the output path."""
        srt = tmp_path / "s.srt"
        srt.write_text("1\n00:00:00,000 --> 00:00:01,000\nHi\n")
        out = tmp_path / "out" / "o.mp4"
        embed_subtitles(tmp_path / "v.mp4", srt, out)
        assert mock_run.call_args.args[0][-1] == str(out)
        assert out.parent.is_dir()
