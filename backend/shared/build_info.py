"""Build metadata reported by the health and status endpoints.

CI sets APP_VERSION and GIT_COMMIT. Without GIT_COMMIT the short hash of
the checkout is used, or "dev" outside one. Resolved once per process, on
first request rather than at import.
"""

import functools
import os
import subprocess

SERVICE_NAME = "wordgame"
UNKNOWN = "dev"


def _git_short_sha() -> str:
    try:
        return subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"],  # noqa: S607
            text=True,
            stderr=subprocess.DEVNULL,
        ).strip() or UNKNOWN
    except (FileNotFoundError, subprocess.CalledProcessError):
        return UNKNOWN


@functools.cache
def build_info() -> dict[str, str]:
    return {
        "service": SERVICE_NAME,
        "version": os.environ.get("APP_VERSION") or UNKNOWN,
        "commit": os.environ.get("GIT_COMMIT") or _git_short_sha(),
    }
