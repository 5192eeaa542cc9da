# errors.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence


class ErrorKind(str, Enum):
    MISSING_FILE = "missing_file"
    UNSUPPORTED_FILE = "unsupported_file"
    UNSUPPORTED_ACTUAL_FILE = "unsupported_actual_file"
    BAD_DIRECTORY = "bad_directory"
    SPAWN_SETUP_FAILED = "spawn_setup_failed"
    NONZERO_EXIT = "nonzero_exit"
    EXECUTING = "executing"
    INVALID_OPERATION = "invalid_operation"


TOOL_HINTS = {
    "cc": "Install a C compiler (e.g., gcc or clang) or fix PATH.",
    "gcc": "Install gcc or fix PATH.",
    "clang": "Install clang or fix PATH.",
    "ld": "Install binutils or fix PATH.",
    "bash": "Install bash or fix PATH.",
    "grep": "Install grep or fix PATH.",
    "tar": "Install tar or fix PATH.",
    "python3": "Install Python 3 or fix PATH (python3).",
    "docker": "Install Docker and ensure the daemon is running.",
}


@dataclass(eq=False)
class ChainError(Exception):
    """
    Structured error raised by operations and chains.

    Carries enough context for:
      - clean CLI output
      - programmatic inspection (kind / details)
      - debugging without full tracebacks
    """
    kind: ErrorKind
    message: str
    tool: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    context: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        lines = [f"{self.kind.value}: {self.message}"]
        if self.tool:
            lines.append(f"tool={self.tool}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        for ctx in reversed(self.context):
            lines.append(f"while {ctx}")
        return "\n".join(lines)

    def add_context(self, text: str) -> ChainError:
        self.context.append(text)
        return self

    # ------------------------------------------------------------------
    # Constructors, one per kind
    # ------------------------------------------------------------------

    @classmethod
    def missing_file(cls) -> ChainError:
        return cls(ErrorKind.MISSING_FILE, "Missing file for operation")

    @classmethod
    def unsupported_file(cls, tool: str, file: Any) -> ChainError:
        return cls(
            ErrorKind.UNSUPPORTED_FILE,
            f"Unsupported file for command {tool!r}: {file!r}",
            tool=tool,
            details={"file": file},
        )

    @classmethod
    def unsupported_actual_file(cls, describe: str) -> ChainError:
        return cls(
            ErrorKind.UNSUPPORTED_ACTUAL_FILE,
            f"Invalid operation actual file specification: {describe}",
        )

    @classmethod
    def bad_directory(cls, tool: str, path: Any, os_error: BaseException) -> ChainError:
        return cls(
            ErrorKind.BAD_DIRECTORY,
            f"Target directory {str(path)!r} error running command {tool!r}: {os_error}",
            tool=tool,
            details={"dir": path, "os_error": os_error},
        )

    @classmethod
    def spawn_setup_failed(
        cls,
        tool: str,
        args: Sequence[str],
        os_error: BaseException,
        directory: Any,
    ) -> ChainError:
        details: Dict[str, Any] = {
            "args": list(args),
            "os_error": os_error,
            "dir": directory,
        }
        hint = TOOL_HINTS.get(os.path.basename(tool))
        if hint:
            details["hint"] = hint
        return cls(
            ErrorKind.SPAWN_SETUP_FAILED,
            f"Error {os_error} setting up running command {tool!r}",
            tool=tool,
            details=details,
        )

    @classmethod
    def nonzero_exit(
        cls,
        tool: str,
        args: Sequence[str],
        code: Optional[int],
        directory: Any,
        stderr: str,
    ) -> ChainError:
        return cls(
            ErrorKind.NONZERO_EXIT,
            f"Error {code} running command {tool!r}",
            tool=tool,
            details={
                "args": list(args),
                "exit_code": code,
                "dir": directory,
                "stderr": stderr[-4000:],
            },
        )

    @classmethod
    def executing(
        cls,
        tool: str,
        args: Sequence[str],
        error: BaseException,
        directory: Any,
    ) -> ChainError:
        return cls(
            ErrorKind.EXECUTING,
            f"Error {error} executing command {tool!r}",
            tool=tool,
            details={"args": list(args), "error": error, "dir": directory},
        )

    @classmethod
    def invalid_operation(cls, message: str = "No valid operation specified") -> ChainError:
        return cls(ErrorKind.INVALID_OPERATION, message)
