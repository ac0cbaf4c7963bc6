"""Exit codes for the release orchestrator.

A run maps its aggregate outcome onto one of these codes so CI can tell a
bad invocation apart from a failed build or a failed upload.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Process exit codes.

    - 0: Success
    - 1: User error (malformed version, unknown target, bad config)
    - 2: Environment error (source tree or required tool not found)
    - 3: Build error (at least one target failed)
    - 4: Network error (builds passed but a publication failed)
    - 5: I/O error (work directory could not be created)
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
