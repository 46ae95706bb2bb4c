"""Tests for the git command-line wrapper."""
import subprocess

import pytest

from repo_degit.core.errors import GitOperationError
from repo_degit.vcs import GitCli


def test_list_refs_parses_ls_remote(monkeypatch):
    captured = {}

    def fake_run(args, **kwargs):
        captured["args"] = args
        return subprocess.CompletedProcess(args, 0, stdout="abc\tHEAD\nabc\trefs/heads/main\n", stderr="")

    monkeypatch.setattr(subprocess, "run", fake_run)

    refs = GitCli().list_refs("https://github.com/u/r")

    assert captured["args"] == ["git", "ls-remote", "https://github.com/u/r"]
    assert [(r.kind, r.name) for r in refs] == [("HEAD", "HEAD"), ("branch", "main")]


def test_failure_raises_with_stderr(monkeypatch):
    monkeypatch.setattr(
        subprocess,
        "run",
        lambda args, **kw: subprocess.CompletedProcess(args, 128, stdout="", stderr="fatal: repository not found\n"),
    )

    with pytest.raises(GitOperationError, match="repository not found"):
        GitCli().shallow_clone("https://github.com/u/r.git", "/tmp/x")


def test_missing_executable(tmp_path):
    git = GitCli(executable="definitely-not-a-git-binary")

    assert not git.available()
    with pytest.raises(GitOperationError):
        git.checkout(tmp_path, "main")
