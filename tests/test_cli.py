"""Tests for the cli module."""
import json
import subprocess
import pytest
from pathlib import Path
from unittest.mock import MagicMock, patch
from local_subtrans.cache import CacheStore
from local_subtrans.cli import build_config, build_parser, main
from local_subtrans.errors import TranslationError
from local_subtrans.models import TOOL_VERSION, TranscriberMode, TranslationCacheEntry


@pytest.fixture(autouse=True)
def in_tmp(tmp_path, monkeypatch):
    """Run every test from an empty working directory."""
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def video(tmp_path):
    p = tmp_path / "talk.mp4"
    p.write_bytes(b"fake video")
    return p


class TestBuildConfig:
    """Tests for build_config function."""

    def test_defaults(self):
        """Test defaults without config file or flags."""
        cfg = build_config(build_parser().parse_args(["cache", "info"]))
        assert cfg.translate.mode == "simple"
        assert cfg.cache.root == ".subtrans/cache"

    def test_config_file_then_flags(self, tmp_path):
        """Test CLI flags override the config file."""
        path = tmp_path / "conf.json"
        path.write_text(json.dumps({
            "translate": {"mode": "nlp", "model": "qwen2.5:7b"},
            "transcriber": {"transcribe_model": "small"},
        }), encoding="utf-8")
        args = build_parser().parse_args([
            "--config", str(path), "--ffmpeg", "/opt/ffmpeg",
            "process", "v.mp4", "--target-langs", "fr",
            "--translation-mode", "window", "--model", "large-v3", "--no-tune",
        ])
        cfg = build_config(args)
        assert cfg.translate.mode == "llm"
        assert cfg.translate.model == "qwen2.5:7b"
        assert cfg.transcriber.transcribe_model == "large-v3"
        assert cfg.transcriber.mode == TranscriberMode.SIMPLE
        assert cfg.media.ffmpeg_binary == "/opt/ffmpeg"

    def test_default_config_in_cwd(self, tmp_path):
        """Test subtrans.json in the working directory is picked up."""
        (tmp_path / "subtrans.json").write_text(json.dumps({"cache": {"root": "elsewhere"}}), encoding="utf-8")
        cfg = build_config(build_parser().parse_args(["cache", "info"]))
        assert cfg.cache.root == "elsewhere"


class TestMainBasics:
    """Tests for top-level options and usage errors."""

    def test_version(self, capsys):
        """Test --version prints the version."""
        assert main(["--version"]) == 0
        assert capsys.readouterr().out.strip() == TOOL_VERSION

    def test_no_command(self, capsys):
        """Test running without a command prints help and fails."""
        assert main([]) == 2
        assert "usage:" in capsys.readouterr().out

    def test_missing_config(self, capsys):
        """Test a missing config file is a usage error."""
        assert main(["--config", "missing.json", "cache", "info"]) == 2
        assert "Config file not found" in capsys.readouterr().err

    def test_invalid_mode(self, capsys, tmp_path):
        """Test an unknown translation mode is a usage error."""
        srt = tmp_path / "in.srt"
        srt.write_text("", encoding="utf-8")
        assert main(["translate", str(srt), "--target-langs", "fr", "--translation-mode", "magic"]) == 2
        assert "Invalid translation mode" in capsys.readouterr().err

    @patch('local_subtrans.cli.diagnose')
    def test_diagnose(self, mock_diagnose):
        """Test --diagnose runs diagnostics and exits cleanly."""
        assert main(["--diagnose"]) == 0
        mock_diagnose.assert_called_once()


@patch('local_subtrans.cli.Workflow')
@patch('local_subtrans.cli.ffmpeg_ok', return_value=True)
class TestProcessCommand:
    """Tests for the process subcommand."""

    def test_process_file(self, mock_ffmpeg, mock_workflow, video, tmp_path):
        """Test a single video is processed for every language."""
        wf = mock_workflow.return_value
        wf.process_file.return_value = [(tmp_path / "talk_fr.srt", tmp_path / "talk_fr.mp4")]

        assert main(["--quiet", "process", str(video), "--target-langs", "FR"]) == 0

        wf.process_file.assert_called_once_with(video, ["fr"], None, language=None)

    def test_ffmpeg_missing(self, mock_ffmpeg, mock_workflow, video, capsys):
        """Test a missing ffmpeg is a usage error."""
        mock_ffmpeg.return_value = False
        assert main(["process", str(video), "--target-langs", "fr"]) == 2
        assert "ffmpeg not found" in capsys.readouterr().err
        mock_workflow.assert_not_called()

    def test_output_exists(self, mock_ffmpeg, mock_workflow, video, tmp_path, capsys):
        """Test existing outputs are refused without --overwrite."""
        (tmp_path / "talk_fr.mp4").write_bytes(b"old")
        assert main(["process", str(video), "--target-langs", "fr"]) == 2
        assert "--overwrite" in capsys.readouterr().err
        mock_workflow.return_value.process_file.assert_not_called()

    def test_missing_input(self, mock_ffmpeg, mock_workflow, tmp_path):
        """Test a missing input file is a usage error."""
        assert main(["process", str(tmp_path / "nope.mp4"), "--target-langs", "fr"]) == 2

    def test_translation_failure(self, mock_ffmpeg, mock_workflow, video, capsys):
        """Test pipeline errors exit with 1."""
        mock_workflow.return_value.process_file.side_effect = TranslationError("Ollama model 'x' is not available")
        assert main(["process", str(video), "--target-langs", "fr"]) == 1
        assert "not available" in capsys.readouterr().err

    def test_ffmpeg_failure(self, mock_ffmpeg, mock_workflow, video, capsys):
        """Test ffmpeg failures exit with 1 and show stderr."""
        mock_workflow.return_value.process_file.side_effect = subprocess.CalledProcessError(
            1, ["ffmpeg"], stderr="Invalid data found"
        )
        assert main(["process", str(video), "--target-langs", "fr"]) == 1
        err = capsys.readouterr().err
        assert "ffmpeg failed (exit 1)" in err
        assert "Invalid data found" in err

    def test_directory(self, mock_ffmpeg, mock_workflow, tmp_path):
        """Test a directory input reports failures with exit code 1."""
        mock_workflow.return_value.process_directory.return_value = [(Path("a.mp4"), "boom")]
        assert main(["--quiet", "process", str(tmp_path), "--target-langs", "fr"]) == 1


@patch('local_subtrans.cli.Workflow')
@patch('local_subtrans.cli.ffmpeg_ok', return_value=True)
class TestBatchCommand:
    """Tests for the batch subcommand."""

    def test_batch(self, mock_ffmpeg, mock_workflow, tmp_path):
        """Test only video files are handed to the workflow."""
        (tmp_path / "a.mp4").write_bytes(b"a")
        (tmp_path / "b.txt").write_text("b")
        mock_workflow.return_value.process_many.return_value = []

        assert main(["--quiet", "batch", str(tmp_path / "a.mp4"), str(tmp_path / "b.txt"),
                     "--target-langs", "fr,ja"]) == 0

        args = mock_workflow.return_value.process_many.call_args
        assert args.args[0] == [tmp_path / "a.mp4"]
        assert args.args[1] == ["fr", "ja"]

    def test_no_videos(self, mock_ffmpeg, mock_workflow, tmp_path, capsys):
        """Test an expansion without videos is a usage error."""
        assert main(["batch", str(tmp_path / "*.mkv"), "--target-langs", "fr"]) == 2
        assert "No video files" in capsys.readouterr().err


@patch('local_subtrans.cli.Workflow')
class TestTranslateCommand:
    """Tests for the translate subcommand."""

    def test_translate(self, mock_workflow, tmp_path):
        """Test each language gets its own SRT."""
        srt = tmp_path / "in.srt"
        srt.write_text("1\n00:00:00,000 --> 00:00:01,000\nHello\n", encoding="utf-8")

        assert main(["--quiet", "translate", str(srt), "--target-langs", "fr,de",
                     "--source-language", "en"]) == 0

        calls = mock_workflow.return_value.translate_subtitles.call_args_list
        assert [c.args for c in calls] == [
            (srt, tmp_path / "in_fr.srt", "fr"),
            (srt, tmp_path / "in_de.srt", "de"),
        ]
        assert calls[0].kwargs == {"source_language": "en"}

    def test_missing_srt(self, mock_workflow, tmp_path):
        """Test a missing SRT is a usage error."""
        assert main(["translate", str(tmp_path / "none.srt"), "--target-langs", "fr"]) == 2


class TestCacheCommand:
    """Tests for the cache subcommand."""

    def populate(self, root):
        store = CacheStore(root, quiet=True)
        entry = TranslationCacheEntry(
            source_text="Hello", target_language="fr", context="",
            translation="Bonjour", quality="GOOD", model="llama3.2:3b", cached_at=0,
        )
        store.translations.save("abc123", entry)
        return store

    def test_info(self, tmp_path, capsys):
        """Test info reports counts per cache kind."""
        root = tmp_path / "cache"
        self.populate(root)
        assert main(["--cache-dir", str(root), "cache", "info"]) == 0
        out = capsys.readouterr().out
        assert "Translations:   1 files" in out
        assert "Transcriptions: 0 files" in out

    def test_list(self, tmp_path, capsys):
        """Test list shows cached translations."""
        root = tmp_path / "cache"
        self.populate(root)
        assert main(["--cache-dir", str(root), "cache", "list", "--kind", "translations"]) == 0
        out = capsys.readouterr().out
        assert "Translations (1):" in out
        assert "GOOD" in out
        assert "Audio (" not in out

    def test_clear(self, tmp_path):
        """Test clear empties the selected cache."""
        root = tmp_path / "cache"
        store = self.populate(root)
        assert main(["--quiet", "--cache-dir", str(root), "cache", "clear"]) == 0
        assert store.translations.list_entries() == []

    def test_invalid_kind(self):
        """Test unknown kinds are rejected by argparse."""
        with pytest.raises(SystemExit):
            main(["cache", "list", "--kind", "everything"])


@patch('local_subtrans.cli.model_status_rows', return_value=[("base", "installed"), ("medium", "not installed")])
class TestModelsCommand:
    """Tests for the models subcommand."""

    def test_list(self, mock_rows, capsys):
        """Test models are listed with the configured pair."""
        assert main(["models"]) == 0
        out = capsys.readouterr().out
        assert "base" in out and "not installed" in out
        assert "explore=base transcribe=medium" in out

    @patch('local_subtrans.cli.download_model_cli', return_value=0)
    def test_download(self, mock_download, mock_rows):
        """Test --download delegates to the model manager."""
        assert main(["models", "--download", "small"]) == 0
        mock_download.assert_called_once_with("small")
