"""repo-degit CLI - Command line interface for degit."""
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from repo_degit.cache import ReferenceCache
from repo_degit.clone import CloneOptions, RepoCloner
from repo_degit.core.auth import github_token
from repo_degit.core.config import Settings
from repo_degit.core.errors import (
    DestinationNotEmptyError,
    InvalidRefError,
    InvalidSourceError,
    OfflineCacheMissError,
)
from repo_degit.source import parse_source

logger = logging.getLogger("repo_degit")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(name)s: %(message)s",
    )


@click.group()
def main():
    """degit - copy a repository snapshot without its history."""
    pass


@main.command()
@click.argument("source")
@click.argument(
    "dest",
    required=False,
    type=click.Path(file_okay=False, path_type=Path),
)
@click.option("--force", is_flag=True, help="Allow cloning into a non-empty directory")
@click.option("--offline", is_flag=True, help="Only use cached refs and archives")
@click.option(
    "--mode",
    type=click.Choice(["tar", "git"]),
    default=None,
    help="tar (archive download, default) or git (full clone)",
)
@click.option("--verbose", "-v", is_flag=True, help="Show progress details")
def clone(
    source: str,
    dest: Optional[Path],
    force: bool,
    offline: bool,
    mode: Optional[str],
    verbose: bool,
):
    """Copy SOURCE into DEST (default: the repository name).

    Examples:
        degit clone user/repo
        degit clone gitlab:user/repo#v1.2.0 my-app
        degit clone user/repo/templates/basic#main --force .

    Exit codes:
        0: Success
        1: Generic runtime failure
        2: Invalid CLI usage or source
        3: Reference not found (or missing from cache when offline)
        4: Destination not empty
    """
    _configure_logging(verbose)
    settings = Settings.from_env()

    try:
        src = parse_source(source)
    except InvalidSourceError as e:
        logger.error(f"Invalid source: {e}")
        sys.exit(2)

    dest = (dest or Path(src.repo)).absolute()
    options = CloneOptions(
        force=force,
        offline=offline,
        mode=mode or settings.mode,
        verbose=verbose,
        token=github_token(),
    )
    cloner = RepoCloner(options, ReferenceCache(settings.cache_dir))

    try:
        result = cloner.clone(src, dest)
    except DestinationNotEmptyError as e:
        logger.error(str(e))
        sys.exit(4)
    except (InvalidRefError, OfflineCacheMissError) as e:
        logger.error(f"Invalid reference: {e}")
        sys.exit(3)
    except Exception as e:
        logger.error(f"Clone failed: {str(e)}")
        sys.exit(1)
    finally:
        cloner.fetcher.close()

    click.echo(f"[OK] Cloned {source} to {dest}")
    if result.commit:
        click.echo(f"  Commit: {result.commit[:12]}")
    if result.fell_back:
        click.echo("  Mode: git (archive download failed)")
    sys.exit(0)


@main.command()
@click.option("--by-recency", is_flag=True, help="Most recently used first")
def cached(by_recency: bool):
    """List repositories present in the local cache."""
    _configure_logging(False)
    cache = ReferenceCache(Settings.from_env().cache_dir)
    repos = cache.list_repos_by_recency() if by_recency else cache.list_repos()
    for repo in repos:
        click.echo(repo)


if __name__ == "__main__":
    main()
