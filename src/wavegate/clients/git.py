"""Repository URL detection for the root application source."""

import re
from typing import Callable, Optional

from wavegate.utils.commands import CommandResult, run_command
from wavegate.utils.logging import get_logger

logger = get_logger(__name__)

_SSH_GITHUB = re.compile(r"^git@github\.com:(.+)$")


def normalize_repo_url(remote_url: str) -> Optional[str]:
    """Convert a git remote to an HTTPS URL without the .git suffix.

    Args:
        remote_url: URL as printed by ``git remote get-url``

    Returns:
        HTTPS URL, or None when the remote uses an unsupported scheme
    """
    remote_url = remote_url.strip()
    match = _SSH_GITHUB.match(remote_url)
    if match:
        url = f"https://github.com/{match.group(1)}"
    elif remote_url.startswith(("http://", "https://")):
        url = remote_url
    else:
        return None

    if url.endswith(".git"):
        url = url[:-len(".git")]
    return url


def detect_repo_url(
    explicit: Optional[str],
    default: str,
    runner: Callable[..., CommandResult] = run_command
) -> str:
    """Resolve the repository URL the root application should track.

    Args:
        explicit: URL given by the user, used as-is when set
        default: Fallback when no usable git remote exists
        runner: Command runner, injectable for tests

    Returns:
        Repository URL
    """
    if explicit:
        logger.info(f"Using provided repository URL: {explicit}")
        return explicit

    result = runner(["git", "remote", "get-url", "origin"], timeout=10)
    if result.ok:
        url = normalize_repo_url(result.stdout)
        if url:
            logger.info(f"Detected repository URL: {url}")
            return url

    logger.info(f"Using default repository URL: {default}")
    return default
