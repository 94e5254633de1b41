"""
Shallow repository cloning via the git CLI.

Credentials are only ever placed in the URL handed to git; everything that
is logged or stored uses the credential-free URL.
"""
from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Optional, Protocol
from urllib.parse import urlsplit, urlunsplit

from ..errors import CloneError

logger = logging.getLogger(__name__)

DEFAULT_CLONE_TIMEOUT = 300


class Cloner(Protocol):
    """Anything that can materialize a repository into a local directory."""

    def __call__(self, url: str, branch: str, dest: Path) -> None:
        ...


def redact_url(url: str) -> str:
    """Strip any userinfo (user, password, token) from a URL."""
    parts = urlsplit(url)
    if not parts.netloc or "@" not in parts.netloc:
        return url
    host = parts.netloc.rsplit("@", 1)[1]
    return urlunsplit((parts.scheme, host, parts.path, parts.query, parts.fragment))


def build_clone_url(url: str, token: Optional[str] = None) -> str:
    """Return the URL git should clone, with the token injected for https remotes."""
    if not token:
        return url
    parts = urlsplit(url)
    if parts.scheme not in ("https", "http") or not parts.netloc:
        return url
    host = parts.netloc.rsplit("@", 1)[-1]
    return urlunsplit(
        (parts.scheme, f"x-access-token:{token}@{host}", parts.path, parts.query, parts.fragment)
    )


def _scrub(text: str, secret: Optional[str]) -> str:
    if secret:
        text = text.replace(secret, "***")
    return text


class GitCloner:
    """Clone with ``git clone --depth 1 --single-branch --branch <branch>``."""

    def __init__(
        self,
        token: Optional[str] = None,
        timeout: int = DEFAULT_CLONE_TIMEOUT,
        git_binary: str = "git",
    ):
        self.token = token
        self.timeout = timeout
        self.git_binary = git_binary

    @classmethod
    def from_settings(cls, settings) -> "GitCloner":
        return cls(token=settings.github_token, timeout=settings.clone_timeout_seconds)

    def __call__(self, url: str, branch: str, dest: Path) -> None:
        safe_url = redact_url(url)
        clone_url = build_clone_url(url, self.token)
        logger.info(f"Cloning {safe_url} (branch={branch}) into {dest}")

        cmd = [
            self.git_binary, "clone",
            "--depth", "1",
            "--single-branch",
            "--branch", branch,
            clone_url,
            str(dest),
        ]
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
            )
        except subprocess.TimeoutExpired as e:
            raise CloneError(
                f"git clone of {safe_url} timed out after {self.timeout}s", cause=e
            ) from e
        except OSError as e:
            raise CloneError(f"Could not run git: {e}", cause=e) from e

        if proc.returncode != 0:
            stderr = (proc.stderr or "").strip().replace(clone_url, safe_url)
            stderr = _scrub(stderr, self.token)
            detail = stderr or f"exit code {proc.returncode}"
            raise CloneError(f"git clone of {safe_url} (branch {branch}) failed: {detail}")

        logger.info(f"Cloned {safe_url}")
