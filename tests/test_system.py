"""Tests for the system module."""
import subprocess
import pytest
from pathlib import Path
from unittest.mock import patch, MagicMock
from local_subtrans.system import (
    binary_ok,
    binary_version,
    ensure_parent_dir,
    file_mtime_seconds,
    probe_duration_seconds,
    run_checked,
    run_cmd_text,
    which_or_none,
)


class TestEnsureParentDir:
    """Tests for ensure_parent_dir function."""

    def test_ensure_parent_dir_creates_directory(self, tmp_path):
        """Test that parent directory is created if it doesn't exist."""
        file_path = tmp_path / "subdir1" / "subdir2" / "file.txt"
        ensure_parent_dir(file_path)

        assert file_path.parent.exists()
        assert file_path.parent.is_dir()

    def test_ensure_parent_dir_exists_already(self, tmp_path):
        """Test that existing parent directory is not affected."""
        existing_dir = tmp_path / "existing"
        existing_dir.mkdir()
        ensure_parent_dir(existing_dir / "file.txt")
        assert existing_dir.is_dir()


class TestFileMtimeSeconds:
    """Tests for file_mtime_seconds function."""

    def test_existing_file(self, tmp_path):
        """Test whole-second mtime of an existing file."""
        p = tmp_path / "a.txt"
        p.write_text("x")
        assert file_mtime_seconds(p) == int(p.stat().st_mtime)

    def test_missing_file(self, tmp_path):
        """Test None for a missing file."""
        assert file_mtime_seconds(tmp_path / "missing") is None


class TestWhichOrNone:
    """Tests for which_or_none function."""

    @patch('shutil.which')
    def test_which_or_none_nonexistent_command(self, mock_which):
        """Test finding a nonexistent command."""
        mock_which.return_value = None
        assert which_or_none("nonexistent_command_xyz") is None

    @patch('shutil.which')
    def test_which_or_none_calls_shutil(self, mock_which):
        """Test that which_or_none calls shutil.which."""
        mock_which.return_value = "/usr/bin/test"
        assert which_or_none("test") == "/usr/bin/test"
        mock_which.assert_called_once_with("test")


class TestBinaryOk:
    """Tests for binary_ok function."""

    @patch('local_subtrans.system.which_or_none')
    def test_available(self, mock_which):
        """Test when the binary is available."""
        mock_which.return_value = "/usr/bin/ffmpeg"
        assert binary_ok("ffmpeg") is True

    @patch('local_subtrans.system.which_or_none')
    def test_not_available(self, mock_which):
        """Test when the binary is not available."""
        mock_which.return_value = None
        assert binary_ok("ffmpeg") is False


class TestBinaryVersion:
    """Tests for binary_version function."""

    @patch('local_subtrans.system.binary_ok')
    def test_not_available(self, mock_ok):
        """Test getting version when the binary is not available."""
        mock_ok.return_value = False
        assert binary_version("ffmpeg") is None

    @patch('local_subtrans.system.binary_ok')
    @patch('local_subtrans.system.run_cmd_text')
    def test_success(self, mock_run_cmd, mock_ok):
        """Test the first line of -version output is returned."""
        mock_ok.return_value = True
        mock_run_cmd.return_value = (0, "ffmpeg version 6.1\nmore info", "")
        assert binary_version("ffmpeg") == "ffmpeg version 6.1"
        mock_run_cmd.assert_called_once_with(["ffmpeg", "-version"])

    @patch('local_subtrans.system.binary_ok')
    @patch('local_subtrans.system.run_cmd_text')
    def test_command_fails(self, mock_run_cmd, mock_ok):
        """Test a failing -version call."""
        mock_ok.return_value = True
        mock_run_cmd.return_value = (1, "", "error")
        assert binary_version("ffmpeg") is None


class TestRunCmdText:
    """Tests for run_cmd_text function."""

    @patch('subprocess.run')
    def test_run_cmd_text_success(self, mock_run):
        """Test running command successfully."""
        mock_process = MagicMock()
        mock_process.returncode = 0
        mock_process.stdout = "output"
        mock_process.stderr = ""
        mock_run.return_value = mock_process

        code, out, err = run_cmd_text(["echo", "test"])

        assert code == 0
        assert out == "output"
        assert err == ""

    @patch('subprocess.run')
    def test_run_cmd_text_failure(self, mock_run):
        """Test running command with failure."""
        mock_process = MagicMock()
        mock_process.returncode = 1
        mock_process.stdout = ""
        mock_process.stderr = "error message"
        mock_run.return_value = mock_process

        code, out, err = run_cmd_text(["false"])

        assert code == 1
        assert err == "error message"


class TestRunChecked:
    """Tests for run_checked function."""

    @patch('subprocess.run')
    def test_success(self, mock_run):
        """Test a zero exit code returns quietly."""
        mock_run.return_value = MagicMock(returncode=0, stderr="")
        run_checked(["ffmpeg", "-version"])
        mock_run.assert_called_once()

    @patch('subprocess.run')
    def test_failure_raises_with_stderr_tail(self, mock_run):
        """Test a non-zero exit raises CalledProcessError with the last 20 stderr lines."""
        stderr = "\n".join(f"line {i}" for i in range(30))
        mock_run.return_value = MagicMock(returncode=1, stderr=stderr)

        with pytest.raises(subprocess.CalledProcessError) as exc:
            run_checked(["ffmpeg", "-i", "x"])

        assert exc.value.returncode == 1
        lines = exc.value.stderr.splitlines()
        assert len(lines) == 20
        assert lines[0] == "line 10"
        assert lines[-1] == "line 29"


class TestProbeDurationSeconds:
    """Tests for probe_duration_seconds function."""

    @patch('local_subtrans.system.binary_ok')
    def test_probe_duration_ffprobe_not_available(self, mock_ok):
        """Test probing when ffprobe is not available."""
        mock_ok.return_value = False
        assert probe_duration_seconds("test.mp3") is None

    @patch('local_subtrans.system.binary_ok')
    @patch('local_subtrans.system.run_cmd_text')
    def test_probe_duration_success(self, mock_run_cmd, mock_ok):
        """Test successfully probing duration."""
        mock_ok.return_value = True
        mock_run_cmd.return_value = (0, "123.456\n", "")
        assert probe_duration_seconds("test.mp3") == 123.456

    @patch('local_subtrans.system.binary_ok')
    @patch('local_subtrans.system.run_cmd_text')
    def test_probe_duration_command_fails(self, mock_run_cmd, mock_ok):
        """Test when ffprobe command fails."""
        mock_ok.return_value = True
        mock_run_cmd.return_value = (1, "", "error")
        assert probe_duration_seconds("test.mp3") is None

    @patch('local_subtrans.system.binary_ok')
    @patch('local_subtrans.system.run_cmd_text')
    def test_probe_duration_invalid_output(self, mock_run_cmd, mock_ok):
        """Test when ffprobe returns invalid output."""
        mock_ok.return_value = True
        mock_run_cmd.return_value = (0, "not a number\n", "")
        assert probe_duration_seconds("test.mp3") is None
