"""Error codes for CLI exit status.

Every pipeline failure ends up as one of these codes, so CI sees a stable
exit status per failure family.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    - 0: Success
    - 1: User error (bad tag, version mismatch, release already published)
    - 2: Environment error (gh missing, credential rejected, toolchain setup)
    - 3: Build error (compile, strip or packaging failed)
    - 4: Network error (retries exhausted, release API failure)
    - 5: I/O error (artifact store, missing artifact, lock snapshot)
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
