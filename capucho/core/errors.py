"""Process exit codes for capucho commands.

The numeric values are part of the CLI contract (CI scripts branch on them)
and must stay stable:
- 0: Success
- 1: User error (bad flag value, no environment selected)
- 2: Environment error (project not initialized, not authenticated, missing files)
- 3: Build error (external build step failed, artifact not produced)
- 4: Network error (upload rejected or server unreachable)
- 5: I/O error (config file not writable)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
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
