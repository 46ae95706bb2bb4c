"""Runtime settings and fixed constants."""
import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

USER_AGENT = "repo-degit"
GITHUB_API = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
MANIFEST_FILENAME = "degit.json"
MAX_REDIRECTS = 10
PAGE_SIZE = 100

# Hosts allowed to receive the Authorization header after a redirect
TRUSTED_REDIRECT_HOSTS = frozenset(
    {
        "api.github.com",
        "github.com",
        "codeload.github.com",
        "objects.githubusercontent.com",
    }
)

CloneMode = Literal["tar", "git"]


def default_cache_dir() -> Path:
    """Return the cache root, honouring $DEGIT_CACHE_DIR."""
    override = os.environ.get("DEGIT_CACHE_DIR", "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / ".cache" / "degit"


class Settings(BaseModel):
    """Process-wide settings, resolved once at startup."""

    cache_dir: Path = Field(default_factory=default_cache_dir)
    mode: CloneMode = Field(default="tar")

    @classmethod
    def from_env(cls) -> "Settings":
        mode = os.environ.get("DEGIT_MODE", "").strip() or "tar"
        return cls(cache_dir=default_cache_dir(), mode=mode)
