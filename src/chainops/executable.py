# executable.py
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from .files import ActualFile

# fn(args, cwd, actual_file): append whatever the tool needs to `args`.
ViaCallFn = Callable[[List[str], Optional[Path], ActualFile], None]


class ExeFileSpec:
    """
    How an Executable is given a file on its command line.  Both input and
    output files are specified this way; stdin/stdout/stderr are not used.
    """

    @staticmethod
    def none() -> NoFileUsed:
        return NoFileUsed()

    @staticmethod
    def append() -> Append:
        return Append()

    @staticmethod
    def option(optname: str) -> Option:
        return Option(str(optname))

    @staticmethod
    def via_call(fn: ViaCallFn) -> ViaCall:
        return ViaCall(fn)


@dataclass(frozen=True)
class NoFileUsed(ExeFileSpec):
    """No file provided or needed."""

    def __repr__(self) -> str:
        return "<none>"


@dataclass(frozen=True)
class Append(ExeFileSpec):
    """
    Append the file(s) to the command.  When both input and output use this,
    the input file(s) come first.
    """

    def __repr__(self) -> str:
        return "append"


@dataclass(frozen=True)
class Option(ExeFileSpec):
    """
    Give the file(s) after this option.  A flag ending in '=' is joined with
    the comma-separated filenames into one argument ("--file=a,b"); otherwise
    the filenames are the next argument ("-o" "a,b").
    """
    flag: str

    def __repr__(self) -> str:
        return f"option({self.flag})"


@dataclass(frozen=True)
class ViaCall(ExeFileSpec):
    """
    A function adds the file to the argument list.  It receives the argument
    list, the directory the command will run in, and the ActualFile.  The
    file paths are relative to that directory; the function should not
    prefix them with it.
    """
    fn: ViaCallFn

    def __repr__(self) -> str:
        return "via function call"


@dataclass(frozen=True)
class Executable:
    """
    Template describing how to run a tool: the executable, arguments used on
    every invocation, and how input and output files are given to it.  A
    SubProcOperation is created from this for a specific invocation.
    """
    exe_file: Path
    inp_file: ExeFileSpec = field(default_factory=Append)
    out_file: ExeFileSpec = field(default_factory=NoFileUsed)
    base_args: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "exe_file", Path(self.exe_file))
        object.__setattr__(self, "base_args", tuple(str(a) for a in self.base_args))

    @property
    def name(self) -> str:
        return os.fspath(self.exe_file)

    def __repr__(self) -> str:
        return (
            f"Executable({self.name!r}, args={list(self.base_args)!r}, "
            f"input={self.inp_file!r}, output={self.out_file!r})"
        )

    def push_arg(self, arg: str) -> Executable:
        """Returns a copy with `arg` added to the arguments used every run."""
        return replace(self, base_args=self.base_args + (str(arg),))

    def set_exe(self, exe: Union[str, "os.PathLike[str]"]) -> Executable:
        return replace(self, exe_file=exe)
