"""
Git Operations — Thin wrappers over the git executable.

Every command runs with a deadline so a hung transfer cannot hold a worker
slot forever. Commands never raise on a non-zero exit: they return a
GitResult, which is falsy on failure, so callers can hand them straight to
retry_call.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from ..errors import redact

logger = logging.getLogger(__name__)

REMOTE = "origin"

# Never stop and wait for a password on a TTY
_GIT_ENV = {"GIT_TERMINAL_PROMPT": "0", "GIT_ASKPASS": "echo"}


@dataclass
class GitResult:
    """Outcome of one git invocation."""

    args: Sequence[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    def __bool__(self) -> bool:
        return self.ok

    @property
    def error(self) -> str:
        """Best available failure description."""
        if self.timed_out:
            return "timed out"
        return self.stderr.strip() or self.stdout.strip() or f"exit code {self.returncode}"


def has_clone(repo_dir: Path) -> bool:
    """A directory counts as cloned iff its .git metadata exists."""
    return (repo_dir / ".git").exists()


def clear_directory(path: Path) -> None:
    """Remove everything inside ``path``, keeping the directory itself."""
    if not path.is_dir():
        return
    for child in path.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()


class GitRunner:
    """
    Runs git commands for one backup run.

    ``secrets`` are scrubbed from anything that reaches the logs.
    """

    def __init__(
        self,
        timeout: float = 900.0,
        secrets: Sequence[str] = (),
        executable: str = "git",
    ):
        self.timeout = timeout
        self.secrets = [s for s in secrets if s]
        self.executable = executable

    def _scrub(self, text: str) -> str:
        return redact(text, *self.secrets)

    def run(
        self,
        *args: str,
        cwd: Optional[Path] = None,
        timeout: Optional[float] = None,
    ) -> GitResult:
        """Run ``git <args>`` and capture its output."""
        cmd = [self.executable] + list(args)
        shown = self._scrub(" ".join(cmd))
        logger.debug(f"$ {shown}" + (f"  (in {cwd})" if cwd else ""))

        try:
            completed = subprocess.run(
                cmd,
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                timeout=timeout or self.timeout,
                env={**os.environ, **_GIT_ENV},
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"git command timed out after {timeout or self.timeout:g}s: {shown}")
            return GitResult(args=cmd, returncode=-1, timed_out=True)
        except OSError as e:
            return GitResult(args=cmd, returncode=-1, stderr=self._scrub(str(e)))

        return GitResult(
            args=cmd,
            returncode=completed.returncode,
            stdout=self._scrub(completed.stdout or ""),
            stderr=self._scrub(completed.stderr or ""),
        )

    # ─── Network operations ─────────────────────────────────

    def clone(self, url: str, dest: Path) -> GitResult:
        return self.run("clone", "--origin", REMOTE, url, str(dest))

    def fetch_all(self, repo_dir: Path) -> GitResult:
        return self.run("fetch", "--all", "--prune", cwd=repo_dir)

    def pull(self, repo_dir: Path, branch: str) -> GitResult:
        return self.run("pull", "--ff-only", REMOTE, branch, cwd=repo_dir)

    # ─── Local operations ───────────────────────────────────

    def ensure_remote_url(self, repo_dir: Path, url: str) -> GitResult:
        """Point origin at ``url`` (token rotation, workspace rename)."""
        # The stored URL, before any url.<base>.insteadOf rewriting
        result = self.run("config", "--get", f"remote.{REMOTE}.url", cwd=repo_dir, timeout=30)
        if result.ok:
            # Output is scrubbed, so compare against the scrubbed form
            if result.stdout.strip() == self._scrub(url):
                return result
            logger.debug(f"Updating {REMOTE} URL in {repo_dir}")
            return self.run("remote", "set-url", REMOTE, url, cwd=repo_dir, timeout=30)
        return self.run("remote", "add", REMOTE, url, cwd=repo_dir, timeout=30)

    def remote_branches(self, repo_dir: Path) -> Optional[List[str]]:
        """
        Branch names under refs/remotes/origin, without the symbolic HEAD.

        Returns None if the refs cannot be read.
        """
        result = self.run(
            "for-each-ref",
            "--format=%(refname)",
            f"refs/remotes/{REMOTE}/",
            cwd=repo_dir,
            timeout=60,
        )
        if not result.ok:
            return None

        prefix = f"refs/remotes/{REMOTE}/"
        branches = []
        for line in result.stdout.splitlines():
            ref = line.strip()
            if not ref.startswith(prefix):
                continue
            name = ref[len(prefix):]
            if name and name != "HEAD":
                branches.append(name)
        return branches

    def local_branch_exists(self, repo_dir: Path, branch: str) -> bool:
        result = self.run(
            "rev-parse", "--verify", "--quiet", f"refs/heads/{branch}",
            cwd=repo_dir, timeout=30,
        )
        return result.ok

    def checkout_tracking(self, repo_dir: Path, branch: str) -> GitResult:
        """Check out ``branch``, creating it to track origin if needed."""
        if self.local_branch_exists(repo_dir, branch):
            return self.run("checkout", branch, cwd=repo_dir, timeout=300)
        return self.run(
            "checkout", "-b", branch, "--track", f"{REMOTE}/{branch}",
            cwd=repo_dir, timeout=300,
        )

    def last_commit(self, repo_dir: Path) -> GitResult:
        return self.run("log", "--oneline", "-1", cwd=repo_dir, timeout=60)

    def commit_count(self, repo_dir: Path) -> Optional[int]:
        result = self.run("rev-list", "--count", "HEAD", cwd=repo_dir, timeout=300)
        if not result.ok:
            return None
        try:
            return int(result.stdout.strip())
        except ValueError:
            return None
