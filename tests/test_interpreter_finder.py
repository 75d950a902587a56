"""
Tests for interpreter detection and checking.
"""

import pytest
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

from common.exceptions import InterpreterCheckError, SubprocessError
from game_manager.interpreter_finder import (
    BINARY_NAME, VERSION_FLAG, InterpreterCandidate, InterpreterFinder,
)


@pytest.fixture
def app_dir(tmp_path):
    path = tmp_path / "app"
    path.mkdir()
    return path


@pytest.fixture
def no_path_lookup():
    with patch("shutil.which", return_value=None) as mock_which:
        yield mock_which


def _touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\n")
    return path


@pytest.mark.unit
class TestFind:
    """Tests for InterpreterFinder.find."""

    def test_nothing_found(self, app_dir, no_path_lookup):
        finder = InterpreterFinder(app_dir, platform="linux", common_paths=[])
        assert finder.find() is None
        assert finder.detect() is None

    def test_builtin_wins(self, app_dir, tmp_path, no_path_lookup):
        builtin = _touch(app_dir / "instead" / "sdl-instead")
        common = _touch(tmp_path / "usr" / "bin" / "sdl-instead")
        finder = InterpreterFinder(app_dir, platform="linux", common_paths=[common])

        assert finder.has_builtin()
        assert finder.find_builtin() == str(builtin)
        assert finder.find() == str(builtin)

    def test_common_path_before_search_path(self, app_dir, tmp_path):
        missing = tmp_path / "opt" / "sdl-instead"
        common = _touch(tmp_path / "usr" / "games" / "sdl-instead")
        on_path = _touch(tmp_path / "bin" / "sdl-instead")
        finder = InterpreterFinder(app_dir, platform="linux", common_paths=[missing, common])

        with patch("shutil.which", return_value=str(on_path)) as mock_which:
            assert finder.find() == str(common)
        mock_which.assert_called_once_with(BINARY_NAME)

    def test_search_path_last(self, app_dir, tmp_path):
        on_path = _touch(tmp_path / "bin" / "sdl-instead")
        finder = InterpreterFinder(app_dir, platform="linux", common_paths=[])

        with patch("shutil.which", return_value=str(on_path)):
            assert finder.find() == str(on_path)

    def test_windows_builtin_name(self, app_dir, no_path_lookup):
        builtin = _touch(app_dir / "instead" / "sdl-instead.exe")
        finder = InterpreterFinder(app_dir, platform="win32", common_paths=[])

        assert finder.find() == str(builtin)

    def test_no_builtin(self, app_dir):
        finder = InterpreterFinder(app_dir, platform="linux", common_paths=[])
        assert finder.has_builtin() is False
        assert finder.find_builtin() == ""


@pytest.mark.unit
class TestExpandCommand:
    """Tests for command expansion."""

    def test_relative_to_app_dir(self, app_dir):
        finder = InterpreterFinder(app_dir, platform="linux")
        assert finder.expand_command("./instead/sdl-instead") == str(app_dir / "instead" / "sdl-instead")

    def test_home_and_variables(self, app_dir, monkeypatch):
        monkeypatch.setenv("HOME", "/home/player")
        monkeypatch.setenv("INSTEAD_DIR", "/opt/instead")
        finder = InterpreterFinder(app_dir, platform="linux")

        assert finder.expand_command("~/bin/sdl-instead") == "/home/player/bin/sdl-instead"
        assert finder.expand_command("$INSTEAD_DIR/sdl-instead") == "/opt/instead/sdl-instead"

    def test_plain_command_unchanged(self, app_dir):
        finder = InterpreterFinder(app_dir, platform="linux")
        assert finder.expand_command(" sdl-instead ") == "sdl-instead"

    def test_is_builtin(self, app_dir):
        _touch(app_dir / "instead" / "sdl-instead")
        finder = InterpreterFinder(app_dir, platform="linux")

        assert finder.is_builtin("./instead/sdl-instead")
        assert finder.is_builtin(str(app_dir / "instead" / "sdl-instead"))
        assert not finder.is_builtin("/usr/bin/sdl-instead")
        assert not finder.is_builtin("")


@pytest.mark.unit
class TestCheck:
    """Tests for InterpreterFinder.check."""

    def test_returns_version_without_line_breaks(self, app_dir, mock_subprocess):
        mock_subprocess.return_value = MagicMock(returncode=0, stdout="3.3.2\r\n", stderr="")
        finder = InterpreterFinder(app_dir, platform="linux")

        assert finder.check("/usr/bin/sdl-instead") == "3.3.2"
        args, kwargs = mock_subprocess.call_args
        assert args[0] == ["/usr/bin/sdl-instead", VERSION_FLAG]
        assert kwargs["timeout"] > 0

    def test_non_zero_exit(self, app_dir, mock_subprocess):
        mock_subprocess.return_value = MagicMock(returncode=1, stdout="", stderr="no display")
        finder = InterpreterFinder(app_dir, platform="linux")

        with pytest.raises(InterpreterCheckError) as exc_info:
            finder.check("/usr/bin/sdl-instead")
        assert "no display" in exc_info.value.message
        assert exc_info.value.builtin is False

    def test_timeout(self, app_dir, mock_subprocess):
        mock_subprocess.side_effect = subprocess.TimeoutExpired("sdl-instead", 10)
        finder = InterpreterFinder(app_dir, platform="linux")

        with pytest.raises(InterpreterCheckError):
            finder.check("/usr/bin/sdl-instead")

    def test_no_output(self, app_dir, mock_subprocess):
        mock_subprocess.return_value = MagicMock(returncode=0, stdout="\r\n", stderr="")
        finder = InterpreterFinder(app_dir, platform="linux")

        with pytest.raises(InterpreterCheckError, match="no version"):
            finder.check("/usr/bin/sdl-instead")

    def test_broken_builtin_flagged(self, app_dir, mock_subprocess):
        _touch(app_dir / "instead" / "sdl-instead")
        mock_subprocess.side_effect = PermissionError("not executable")
        finder = InterpreterFinder(app_dir, platform="linux")

        with pytest.raises(InterpreterCheckError) as exc_info:
            finder.check(finder.find_builtin())
        assert exc_info.value.builtin is True
        assert exc_info.value.code == "BUILTIN_INTERPRETER_BROKEN"

    def test_empty_command(self, app_dir):
        with pytest.raises(InterpreterCheckError):
            InterpreterFinder(app_dir, platform="linux").check("")

    @pytest.mark.integration
    def test_missing_binary(self, app_dir):
        finder = InterpreterFinder(app_dir, platform="linux")
        with pytest.raises(SubprocessError):
            finder.check("/bin/nonexistent")


@pytest.mark.unit
class TestDetect:
    """Tests for find plus check."""

    def test_verified_candidate(self, app_dir, mock_subprocess, no_path_lookup):
        builtin = _touch(app_dir / "instead" / "sdl-instead")
        mock_subprocess.return_value = MagicMock(returncode=0, stdout="3.5.0\n", stderr="")
        finder = InterpreterFinder(app_dir, platform="linux", common_paths=[])

        candidate = finder.detect()

        assert candidate == InterpreterCandidate(str(builtin), "3.5.0")
        assert candidate.verified

    def test_broken_candidate_still_returned(self, app_dir, mock_subprocess, no_path_lookup):
        _touch(app_dir / "instead" / "sdl-instead")
        mock_subprocess.return_value = MagicMock(returncode=127, stdout="", stderr="")
        finder = InterpreterFinder(app_dir, platform="linux", common_paths=[])

        candidate = finder.detect()

        assert candidate is not None
        assert candidate.verified is False

    def test_without_verification(self, app_dir, mock_subprocess, no_path_lookup):
        _touch(app_dir / "instead" / "sdl-instead")
        finder = InterpreterFinder(app_dir, platform="linux", common_paths=[])

        candidate = finder.detect(verify=False)

        assert candidate.verified_version is None
        mock_subprocess.assert_not_called()
