"""
GitHub service for webhook validation and repo operations.
"""

import hmac
import hashlib
import logging
import os
import shutil
import subprocess
import tempfile
from typing import Any, Dict, Optional, Sequence

from api.src.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

class RepositoryError(Exception):
    """Raised when a repository cannot be checked out."""
    pass

def verify_signature(payload: bytes, signature: str) -> bool:
    """Verify GitHub webhook signature."""
    if not settings.github_webhook_secret:
        # Skip verification if no secret configured (development)
        return True

    expected = "sha256=" + hmac.new(
        settings.github_webhook_secret.encode(),
        payload,
        hashlib.sha256
    ).hexdigest()
    return hmac.compare_digest(expected, signature or "")

def parse_repo_info(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Extract what is needed to check out the commit under test."""
    repo = payload.get("repository") or {}
    pull_request = payload.get("pull_request") or {}

    if pull_request:
        commit_sha = (pull_request.get("head") or {}).get("sha", "")
        base_sha = (pull_request.get("base") or {}).get("sha", "")
    else:
        commit_sha = (payload.get("head_commit") or {}).get("id") or payload.get("after", "")
        base_sha = ""

    return {
        "repo_full_name": repo.get("full_name", ""),
        "clone_url": repo.get("clone_url", ""),
        "commit_sha": commit_sha,
        "base_sha": base_sha,
    }

def clone_repository(clone_url: str, commit_sha: str) -> str:
    """
    Clone repository to temporary directory.
    Returns path to cloned repo.
    """
    temp_dir = tempfile.mkdtemp(prefix="tfpipe_")
    repo_path = os.path.join(temp_dir, "repo")
    timeout = settings.clone_timeout

    try:
        subprocess.run(
            ["git", "clone", "--depth", "1", clone_url, repo_path],
            check=True,
            capture_output=True,
            timeout=timeout
        )

        # Checkout specific commit if provided
        if commit_sha:
            subprocess.run(
                ["git", "fetch", "--depth", "1", "origin", commit_sha],
                cwd=repo_path,
                capture_output=True,
                timeout=timeout
            )
            subprocess.run(
                ["git", "checkout", commit_sha],
                cwd=repo_path,
                check=True,
                capture_output=True,
                timeout=timeout
            )

        return repo_path
    except subprocess.TimeoutExpired:
        cleanup_repo(repo_path)
        raise RepositoryError("Repository clone timed out")
    except subprocess.CalledProcessError as e:
        cleanup_repo(repo_path)
        raise RepositoryError(f"Failed to clone repository: {e.stderr.decode(errors='replace')}")
    except OSError as e:
        cleanup_repo(repo_path)
        raise RepositoryError(f"Failed to run git: {e}")

def read_file_at_commit(repo_path: str, commit_sha: str, names: Sequence[str]) -> Optional[str]:
    """
    Return the first of `names` that exists at `commit_sha`, or None.
    The commit is fetched first since checkouts are shallow.
    """
    timeout = settings.clone_timeout

    try:
        subprocess.run(
            ["git", "fetch", "--depth", "1", "origin", commit_sha],
            cwd=repo_path,
            check=True,
            capture_output=True,
            timeout=timeout
        )
        for name in names:
            result = subprocess.run(
                ["git", "show", f"{commit_sha}:{name}"],
                cwd=repo_path,
                capture_output=True,
                timeout=timeout
            )
            if result.returncode == 0:
                return result.stdout.decode("utf-8")
    except subprocess.TimeoutExpired:
        raise RepositoryError(f"Fetching {commit_sha} timed out")
    except subprocess.CalledProcessError as e:
        raise RepositoryError(f"Failed to fetch {commit_sha}: {e.stderr.decode(errors='replace')}")
    except UnicodeDecodeError:
        raise RepositoryError(f"Config file at {commit_sha} is not valid UTF-8")
    except OSError as e:
        raise RepositoryError(f"Failed to run git: {e}")

    return None

def cleanup_repo(repo_path: str):
    """Clean up cloned repository."""
    parent = os.path.dirname(repo_path) if repo_path else ""
    if parent and os.path.exists(parent):
        shutil.rmtree(parent, ignore_errors=True)
        logger.debug(f"Removed checkout {parent}")
