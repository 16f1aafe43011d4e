"""
End-to-end synchronization against real git.

A bare repository on disk stands in for Bitbucket: a throwaway global git
config rewrites the authenticated https clone URL to a file:// URL, so the
synchronizer runs unmodified.
"""

import shutil
import subprocess
from pathlib import Path

import pytest

from bitbucket_backup.mirror.git_ops import GitRunner
from bitbucket_backup.mirror.synchronizer import RepositorySynchronizer
from bitbucket_backup.mirror.verifier import BackupVerifier
from bitbucket_backup.models.outcome import VerificationStatus

from tests.conftest import TOKEN

pytestmark = [
    pytest.mark.git,
    pytest.mark.skipif(shutil.which("git") is None, reason="git not installed"),
]


def _git(*args: str, cwd: Path) -> str:
    completed = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=True,
    )
    return completed.stdout.strip()


def _commit(work: Path, name: str, message: str) -> None:
    (work / name).write_text(message + "\n")
    _git("add", name, cwd=work)
    _git("commit", "-m", message, cwd=work)


@pytest.fixture
def remotes(tmp_path, monkeypatch, config):
    """Directory of bare remotes that the clone URLs resolve to."""
    remotes = tmp_path / "remotes"
    remotes.mkdir()

    prefix = config.clone_url("x")[: -len("x.git")]
    gitconfig = tmp_path / "gitconfig"
    gitconfig.write_text(
        "[user]\n"
        "\tname = Backup Test\n"
        "\temail = backup@example.com\n"
        "[init]\n"
        "\tdefaultBranch = main\n"
        "[protocol \"file\"]\n"
        "\tallow = always\n"
        f"[url \"{remotes.as_uri()}/\"]\n"
        f"\tinsteadOf = {prefix}\n"
    )
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(gitconfig))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    return remotes


@pytest.fixture
def upstream(tmp_path, remotes):
    """Working copy pushing to remotes/alpha.git with main and dev branches."""
    _git("init", "--bare", str(remotes / "alpha.git"), cwd=tmp_path)

    work = tmp_path / "work"
    work.mkdir()
    _git("init", cwd=work)
    _commit(work, "README.md", "Initial commit")
    _git("branch", "-M", "main", cwd=work)
    _git("checkout", "-b", "dev", cwd=work)
    _commit(work, "feature.txt", "Start feature")
    _git("remote", "add", "origin", str(remotes / "alpha.git"), cwd=work)
    _git("push", "origin", "main", "dev", cwd=work)
    _git("checkout", "main", cwd=work)
    return work


@pytest.fixture
def synchronizer(config, no_wait_policy):
    git = GitRunner(timeout=60, secrets=[TOKEN])
    return RepositorySynchronizer(config, git=git, retry_policy=no_wait_policy)


def test_clone_then_update(config, upstream, synchronizer):
    first = synchronizer.sync("alpha")

    assert first.ok
    assert first.branches_seen == 2
    assert first.branches_updated == 2

    repo = config.repo_dir("alpha")
    assert _git("branch", "--format=%(refname:short)", cwd=repo).split() == ["dev", "main"]
    # get-url would apply the insteadOf rewrite; read the stored value
    assert TOKEN in _git("config", "--get", "remote.origin.url", cwd=repo)

    _commit(upstream, "CHANGELOG.md", "Release notes")
    _git("push", "origin", "main", cwd=upstream)

    second = synchronizer.sync("alpha")

    assert second.ok
    assert second.fully_current
    assert _git("log", "-1", "--format=%s", "main", cwd=repo) == "Release notes"


def test_resync_without_changes_is_idempotent(config, upstream, synchronizer):
    synchronizer.sync("alpha")
    repo = config.repo_dir("alpha")
    before = _git("for-each-ref", "--format=%(refname) %(objectname)", cwd=repo)

    again = synchronizer.sync("alpha")

    assert again.ok
    assert again.branches_updated == 2
    assert _git("for-each-ref", "--format=%(refname) %(objectname)", cwd=repo) == before


def test_verify_after_sync(config, upstream, synchronizer):
    synchronizer.sync("alpha")

    result = BackupVerifier(config, git=synchronizer.git).verify("alpha")

    assert result.status == VerificationStatus.OK
    assert result.commit_count >= 1


def test_missing_remote_fails_cleanly(config, remotes, synchronizer):
    outcome = synchronizer.sync("ghost")

    assert not outcome.ok
    assert TOKEN not in outcome.error
