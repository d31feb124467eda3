"""GitHub URL utilities."""

from __future__ import annotations

import re

# github.com/<owner> in https, git+https, git://, ssh (git@github.com:owner) forms
_GITHUB_OWNER_RE = re.compile(r"github\.com[/:]([^/:#?\s]+)", re.IGNORECASE)

# npm shorthand: "github:owner/repo" or bare "owner/repo"
_SHORTHAND_RE = re.compile(r"^(?:github:)?([A-Za-z0-9][A-Za-z0-9-]*)/[A-Za-z0-9._-]+$")


def extract_github_owner(repo_url: str | None) -> str | None:
    """Extract the account/organization name from a repository URL.

    Handles:
      - https://github.com/owner/repo
      - git+https://github.com/owner/repo.git
      - git://github.com/owner/repo.git
      - git+ssh://git@github.com/owner/repo.git
      - git@github.com:owner/repo.git
      - github:owner/repo and owner/repo (npm shorthand)

    Returns None when the URL does not point at GitHub.
    """
    if not repo_url:
        return None
    repo_url = repo_url.strip()

    m = _GITHUB_OWNER_RE.search(repo_url)
    if m:
        return m.group(1)

    m = _SHORTHAND_RE.match(repo_url)
    if m:
        return m.group(1)
    return None


def clean_repo_url(repo_url: str) -> str:
    """Normalize a registry repository URL for display.

    ``git+https://github.com/o/r.git`` -> ``https://github.com/o/r``
    ``git://github.com/o/r.git``       -> ``https://github.com/o/r``
    ``git+ssh://git@github.com/o/r``   -> ``https://github.com/o/r``
    """
    url = repo_url.strip()
    if url.startswith("git+"):
        url = url[len("git+") :]
    if url.startswith("ssh://git@"):
        url = "https://" + url[len("ssh://git@") :]
    elif url.startswith("git://"):
        url = "https://" + url[len("git://") :]
    elif url.startswith("git@"):
        host, _, path = url[len("git@") :].partition(":")
        url = f"https://{host}/{path}"
    elif url.startswith("github:"):
        url = "https://github.com/" + url[len("github:") :]
    url = url.rstrip("/")
    return url.removesuffix(".git")
