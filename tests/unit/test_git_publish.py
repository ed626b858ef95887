from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from balloon_pipeline.common.errors import PublishError
from balloon_pipeline.publish import git_publish


class FakeGit:
    def __init__(self, status: str = "", fail: set[str] | None = None):
        self.status = status
        self.fail = fail or set()
        self.commands: list[list[str]] = []

    def __call__(self, cmd, cwd, check, capture_output, text):
        args = cmd[1:]
        self.commands.append(args)
        if args[0] in self.fail:
            raise subprocess.CalledProcessError(1, cmd, output="", stderr=f"{args[0]} rejected")
        stdout = ""
        if args[0] == "rev-parse":
            stdout = "true\n"
        elif args[0] == "status":
            stdout = self.status
        return subprocess.CompletedProcess(cmd, 0, stdout=stdout, stderr="")

    def verbs(self) -> list[str]:
        return [args[0] for args in self.commands]


@pytest.fixture
def fake_git(monkeypatch):
    def _install(**kwargs) -> FakeGit:
        fake = FakeGit(**kwargs)
        monkeypatch.setattr(git_publish.shutil, "which", lambda _name: "/usr/bin/git")
        monkeypatch.setattr(git_publish.subprocess, "run", fake)
        return fake

    return _install


def test_publish_commits_and_pushes_changes(fake_git, tmp_path: Path):
    fake = fake_git(status=" M data/processed.json\n?? data/current/00.json\n")

    outcome = git_publish.publish_outputs(tmp_path, message="Automated update", remote="origin", branch="main")

    assert outcome["committed"] is True
    assert outcome["changed"] == 2
    assert outcome["message"].startswith("Automated update - ")
    assert fake.verbs() == ["rev-parse", "pull", "add", "status", "commit", "push"]
    assert fake.commands[-1] == ["push", "origin", "main"]


def test_publish_without_changes_skips_commit(fake_git, tmp_path: Path):
    fake = fake_git(status="")

    outcome = git_publish.publish_outputs(tmp_path, message="Automated update")

    assert outcome["committed"] is False
    assert "commit" not in fake.verbs()
    assert "push" not in fake.verbs()


def test_publish_tolerates_pull_failure(fake_git, tmp_path: Path):
    fake = fake_git(status=" M data/processed.json\n", fail={"pull"})

    outcome = git_publish.publish_outputs(tmp_path, message="Automated update")

    assert outcome["committed"] is True
    assert fake.verbs()[-1] == "push"


def test_publish_push_failure_raises(fake_git, tmp_path: Path):
    fake_git(status=" M data/processed.json\n", fail={"push"})

    with pytest.raises(PublishError):
        git_publish.publish_outputs(tmp_path, message="Automated update")


def test_publish_adds_requested_paths(fake_git, tmp_path: Path):
    fake = fake_git(status="")

    git_publish.publish_outputs(tmp_path, message="m", paths=["data/processed.json"])

    assert ["add", "data/processed.json"] in fake.commands


def test_publish_requires_git(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(git_publish.shutil, "which", lambda _name: None)
    with pytest.raises(PublishError):
        git_publish.publish_outputs(tmp_path, message="m")
