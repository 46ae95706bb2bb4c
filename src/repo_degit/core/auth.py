"""Credential lookup for GitHub requests."""
import logging
import os
import shutil
import subprocess

logger = logging.getLogger(__name__)


def github_token() -> str:
    """Return a GitHub token from the environment or the gh CLI.

    An empty string means no credential is available; callers proceed
    unauthenticated.
    """
    for var in ("GITHUB_TOKEN", "GH_TOKEN"):
        token = os.environ.get(var, "").strip()
        if token:
            return token

    if shutil.which("gh") is None:
        return ""

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
        )
    except OSError as e:
        logger.debug(f"gh auth token failed: {e}")
        return ""

    if result.returncode != 0:
        return ""
    return result.stdout.strip()
