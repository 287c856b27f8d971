import subprocess
from unittest.mock import patch

import pytest

from shared.build_info import SERVICE_NAME, _git_short_sha, build_info


@pytest.fixture(autouse=True)
def _fresh_build_info():
    build_info.cache_clear()
    yield
    build_info.cache_clear()


class TestGitShortSha:
    def test_strips_git_output(self):
        with patch("subprocess.check_output", return_value="abc1234\n"):
            assert _git_short_sha() == "abc1234"

    def test_dev_without_git(self):
        with patch("subprocess.check_output", side_effect=FileNotFoundError):
            assert _git_short_sha() == "dev"

    def test_dev_outside_checkout(self):
        with patch("subprocess.check_output", side_effect=subprocess.CalledProcessError(128, "git")):
            assert _git_short_sha() == "dev"

    def test_dev_on_empty_output(self):
        with patch("subprocess.check_output", return_value="\n"):
            assert _git_short_sha() == "dev"


class TestBuildInfo:
    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("APP_VERSION", "1.2.3")
        monkeypatch.setenv("GIT_COMMIT", "abc1234")
        assert build_info() == {"service": SERVICE_NAME, "version": "1.2.3", "commit": "abc1234"}

    def test_falls_back_to_git(self, monkeypatch):
        monkeypatch.delenv("APP_VERSION", raising=False)
        monkeypatch.delenv("GIT_COMMIT", raising=False)
        with patch("subprocess.check_output", return_value="feed42\n") as check_output:
            assert build_info() == {"service": "wordgame", "version": "dev", "commit": "feed42"}
            build_info()
        check_output.assert_called_once()

    def test_cached_until_cleared(self, monkeypatch):
        monkeypatch.setenv("GIT_COMMIT", "first")
        assert build_info()["commit"] == "first"
        monkeypatch.setenv("GIT_COMMIT", "second")
        assert build_info()["commit"] == "first"
        build_info.cache_clear()
        assert build_info()["commit"] == "second"
