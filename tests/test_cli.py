"""
Tests for the bitbucket-backup command line.

Discovery and synchronization are patched at the CLI module, so these
exercise option parsing, settings loading and exit codes end to end.
"""

from unittest import mock

import click
import pytest
from click.testing import CliRunner

from bitbucket_backup import __version__
from bitbucket_backup.errors import DiscoveryError
from bitbucket_backup.main import cli, main
from bitbucket_backup.models.outcome import RepositoryOutcome

from tests.conftest import TOKEN, write_settings


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for key in ("ATLASSIAN_EMAIL", "API_TOKEN", "ORGNAME", "BACKUP_DIR", "LOG_FORMAT", "LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def settings(tmp_path):
    return write_settings(
        tmp_path / "config.env",
        ATLASSIAN_EMAIL="ops@example.com",
        API_TOKEN=TOKEN,
        ORGNAME="acme",
        BACKUP_DIR=str(tmp_path / "backups"),
    )


@pytest.fixture
def bitbucket():
    """Patched BitbucketClient; yields the client the CLI enters."""
    with mock.patch("bitbucket_backup.main.BitbucketClient") as client_cls:
        client = client_cls.return_value.__enter__.return_value
        client.list_repositories.return_value = ["alpha", "beta"]
        yield client


@pytest.fixture
def synchronizer():
    with mock.patch("bitbucket_backup.main.RepositorySynchronizer") as sync_cls:
        sync = sync_cls.return_value
        sync.sync.side_effect = lambda slug: RepositoryOutcome.success(
            slug, branches_seen=1, branches_updated=1
        )
        yield sync


class TestOptions:
    def test_help(self, runner):
        result = runner.invoke(cli, ["-h"])

        assert result.exit_code == 0
        assert "--dry-run" in result.output
        assert "--skip-existing" in result.output
        assert "--jobs" in result.output
        assert "ATLASSIAN_EMAIL" in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_unknown_option_exits_1(self, runner, bitbucket):
        result = runner.invoke(cli, ["--frobnicate"])

        assert result.exit_code == 1
        assert "No such option: --frobnicate" in result.output
        bitbucket.list_repositories.assert_not_called()

    @pytest.mark.parametrize("jobs", ["0", "-3", "many"])
    def test_invalid_job_count_exits_1(self, runner, jobs):
        result = runner.invoke(cli, ["--jobs", jobs])

        assert result.exit_code == 1
        assert "Invalid value for '-j' / '--jobs'" in result.output

    def test_usage_errors_propagate_outside_standalone_mode(self):
        with pytest.raises(click.UsageError):
            cli.main(["--frobnicate"], standalone_mode=False)

    def test_console_entry_point_exit_codes(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.argv", ["bitbucket-backup", "--frobnicate"])
        with pytest.raises(SystemExit) as excinfo:
            main()
        assert excinfo.value.code == 1
        assert "Usage: bitbucket-backup" in capsys.readouterr().err

        monkeypatch.setattr("sys.argv", ["bitbucket-backup", "--help"])
        assert main() is None
        assert "--skip-existing" in capsys.readouterr().out


class TestRun:
    def test_missing_settings_file_exits_1(self, runner, tmp_path, bitbucket):
        result = runner.invoke(cli, ["--config", str(tmp_path / "missing.env")])

        assert result.exit_code == 1
        bitbucket.list_repositories.assert_not_called()

    def test_successful_run_exits_0(self, runner, settings, bitbucket, synchronizer, tmp_path):
        result = runner.invoke(cli, ["-c", str(settings), "-j", "2"])

        assert result.exit_code == 0
        assert "Successful backups: 2" in result.output
        assert synchronizer.sync.call_count == 2
        assert (tmp_path / "backups" / "BACKUP_LASTRUN.json").is_file()

    def test_failed_repository_exits_1(self, runner, settings, bitbucket, synchronizer):
        synchronizer.sync.side_effect = lambda slug: (
            RepositoryOutcome.failure(slug, "clone failed")
            if slug == "beta"
            else RepositoryOutcome.success(slug)
        )

        result = runner.invoke(cli, ["-c", str(settings)])

        assert result.exit_code == 1
        assert "Failed repositories:\n  - beta" in result.output

    def test_discovery_failure_exits_1(self, runner, settings, bitbucket, synchronizer):
        bitbucket.list_repositories.side_effect = DiscoveryError("HTTP 401")

        result = runner.invoke(cli, ["-c", str(settings)])

        assert result.exit_code == 1
        synchronizer.sync.assert_not_called()

    def test_empty_workspace_exits_1(self, runner, settings, bitbucket, synchronizer):
        bitbucket.list_repositories.return_value = []

        result = runner.invoke(cli, ["-c", str(settings)])

        assert result.exit_code == 1

    def test_dry_run_writes_nothing(self, runner, settings, bitbucket, synchronizer, tmp_path):
        result = runner.invoke(cli, ["-c", str(settings), "--dry-run", "--verify"])

        assert result.exit_code == 0
        assert "BACKUP SUMMARY (DRY RUN)" in result.output
        assert not (tmp_path / "backups").exists()

    def test_flags_reach_configuration(self, runner, settings, bitbucket, synchronizer):
        with mock.patch("bitbucket_backup.main.BackupVerifier") as verifier_cls:
            verifier_cls.return_value.verify.side_effect = AssertionError("verify is off")
            result = runner.invoke(cli, ["-c", str(settings), "-s", "-v", "-j", "6"])

        assert result.exit_code == 0
        config = verifier_cls.call_args.args[0]
        assert config.skip_existing
        assert config.verbose
        assert config.max_parallel_jobs == 6
        assert not config.verify
