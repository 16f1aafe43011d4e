"""
Bitbucket Backup — CLI Entry Point

Usage:
    bitbucket-backup [--config FILE] [--dry-run] [--verbose]
                     [--skip-existing] [--jobs N] [--verify]

    python -m bitbucket_backup --dry-run

Exit status is 0 when every repository was backed up (or for --help),
1 when any repository failed, the run could not start, or the command
line was invalid.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from . import __version__
from .bitbucket.discovery import BitbucketClient
from .config.loader import DEFAULT_CONFIG_FILE, DEFAULT_MAX_PARALLEL_JOBS, load_config
from .config.validator import ConfigValidator
from .engine.orchestrator import BackupOrchestrator
from .errors import BackupError
from .logging_config import setup_logging
from .mirror.git_ops import GitRunner
from .mirror.synchronizer import RepositorySynchronizer
from .mirror.verifier import BackupVerifier
from .reporting.reporter import Reporter

logger = logging.getLogger("bitbucket_backup")

EPILOG = """\b
Examples:
  bitbucket-backup                     # Run with default settings
  bitbucket-backup --dry-run           # See what would be backed up
  bitbucket-backup --verbose --jobs 8  # Verbose output with 8 parallel jobs
  bitbucket-backup --config my.env     # Use custom config file

\b
Configuration (config.env):
  ATLASSIAN_EMAIL  Your Atlassian account email
  API_TOKEN        Your Bitbucket API token
  ORGNAME          Your Bitbucket workspace name
  BACKUP_DIR       Directory to store backups
"""


class BackupCommand(click.Command):
    """Command whose usage errors exit 1 like every other fatal error."""

    def main(self, *args, standalone_mode: bool = True, **kwargs):
        try:
            return super().main(*args, standalone_mode=False, **kwargs)
        except click.ClickException as e:
            if not standalone_mode:
                raise
            e.show()
            raise SystemExit(1)
        except click.Abort:
            if not standalone_mode:
                raise
            click.echo("Aborted!", err=True)
            raise SystemExit(1)


@click.command(
    cls=BackupCommand,
    context_settings={"help_option_names": ["-h", "--help"]},
    epilog=EPILOG,
)
@click.option(
    "-c", "--config", "config_file",
    default=DEFAULT_CONFIG_FILE,
    show_default=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Settings file",
)
@click.option("-d", "--dry-run", is_flag=True, help="Show what would be done without executing")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("-s", "--skip-existing", is_flag=True, help="Skip repositories that already exist")
@click.option(
    "-j", "--jobs",
    default=DEFAULT_MAX_PARALLEL_JOBS,
    show_default=True,
    type=click.IntRange(min=1),
    help="Number of parallel jobs",
)
@click.option("--verify", is_flag=True, help="Verify backups after completion")
@click.version_option(__version__, "--version")
def cli(
    config_file: Path,
    dry_run: bool,
    verbose: bool,
    skip_existing: bool,
    jobs: int,
    verify: bool,
) -> None:
    """Back up every repository and branch of a Bitbucket workspace."""
    setup_logging(level="DEBUG" if verbose else None)

    if dry_run:
        logger.info("DRY RUN MODE - No actual changes will be made")

    try:
        config = load_config(
            config_file,
            dry_run=dry_run,
            verbose=verbose,
            skip_existing=skip_existing,
            jobs=jobs,
            verify=verify,
        )
        ConfigValidator(config).validate()

        git = GitRunner(timeout=config.git_timeout, secrets=config.secrets)

        with BitbucketClient(config) as client:
            orchestrator = BackupOrchestrator(
                config,
                discovery=client,
                synchronizer=RepositorySynchronizer(config, git=git),
                verifier=BackupVerifier(config, git=git),
                reporter=Reporter(config),
            )
            result = orchestrator.run()
    except BackupError as e:
        logger.error(str(e))
        raise SystemExit(1)

    raise SystemExit(result.exit_code)


def main() -> None:
    cli(prog_name="bitbucket-backup")


if __name__ == "__main__":
    main()
