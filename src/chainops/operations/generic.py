# operations/generic.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from ..execution import OsRun
from ..files import ActualFile, PathLike


class OpInterface(ABC):
    """
    An operation that can be performed: running an executable in a
    sub-process, calling a local function, or a chain of those.
    """

    @abstractmethod
    def label(self) -> str:
        """Short user-facing identifier of this operation."""

    @abstractmethod
    def set_label(self, new_label: str):
        ...

    @abstractmethod
    def execute(self, executor: OsRun, cwd: Optional[PathLike] = None) -> ActualFile:
        """
        Perform the operation, returning the output file written (if any).

        `cwd` is the target directory.  A directory set on the operation with
        `set_dir()` is taken relative to it (unless absolute).  Input and
        output filenames are passed exactly as given and are *not* combined
        with the directory: relative names must be valid from the directory
        the operation runs in.

        Executing may update the operation's own input files (chains thread
        the output of one stage into the next), and a chain serializes
        concurrent execute calls on itself.
        """

    def execute_here(self, executor: OsRun) -> ActualFile:
        """Execute in the current directory."""
        return self.execute(executor, None)


def execute_here(op: OpInterface, executor: OsRun) -> ActualFile:
    """Execute an operation with a given executor in the current directory."""
    return op.execute(executor, None)
