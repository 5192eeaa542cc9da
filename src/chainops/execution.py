# execution.py
"""
The lowest layer of chainops: actually performing the sub-process runs,
function calls, globs and temp-file creation decided on by the rest of the
library.

Keeping every OS interaction behind the OsRun interface keeps the
operations and chains pure and easy to test: a different OsRun can record,
simulate or redirect the work (see chainops.testing).  Operations talk to
the OsRun back-and-forth: results of one interaction (a temp file name, glob
matches) inform what the operation asks for next.
"""
from __future__ import annotations

import errno
import glob
import os
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from .envspec import EnvSpec
from .files import ActualFile, TempFile
from .ui.console import Console, get_console

# fn(directory, input files, output file); raises to signal failure.
FunctionCall = Callable[[Path, ActualFile, ActualFile], None]


# ---------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------

class RunResult:
    """Outcome of OsRun.run_executable / OsRun.run_function."""


@dataclass
class RunOk(RunResult):
    pass


@dataclass
class SpawnFailed(RunResult):
    error: OSError


@dataclass
class NonzeroExit(RunResult):
    code: Optional[int]
    stderr: str = ""


@dataclass
class CallbackFailed(RunResult):
    error: Exception


@dataclass
class BadDirectory(RunResult):
    path: Path
    error: OSError


# ---------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------

class OsRun(ABC):
    """
    Interface to whatever performs the operations.  Implementations are used
    by reference and may keep internal state (e.g. a list of recorded calls).
    """

    @abstractmethod
    def run_executable(
        self,
        label: str,
        exe_file: Path,
        args: List[str],
        env: EnvSpec,
        fromdir: Optional[Path],
    ) -> RunResult:
        """Run `exe_file` with `args` in `fromdir` (current directory if None)."""

    @abstractmethod
    def run_function(
        self,
        name: str,
        call: FunctionCall,
        inpfiles: ActualFile,
        outfile: ActualFile,
        fromdir: Optional[Path],
    ) -> RunResult:
        """Call `call` with the reference directory and the files."""

    @abstractmethod
    def glob_search(self, globpat: str) -> List[Path]:
        """Return the files matching a glob pattern."""

    @abstractmethod
    def mk_tempfile(self, suffix: str) -> TempFile:
        """
        Create a temporary file.  The result owns a real file on disk; there
        is no meaningful way to fake it, and creating one is harmless, so
        simulating implementations are expected to create it too.
        """


# ---------------------------------------------------------------------
# Default implementation
# ---------------------------------------------------------------------

class ExecMode(str, Enum):
    NORMAL_RUN = "run"
    NORMAL_WITH_ECHO = "echo"
    NORMAL_WITH_LABEL = "label"
    DRY_RUN = "dry-run"


class Executor(OsRun):
    """
    The default OsRun: performs everything on the local system.

    Modes:
      NORMAL_RUN         run silently
      NORMAL_WITH_ECHO   print each command (and its directory) before running it
      NORMAL_WITH_LABEL  print each operation's label before running it
      DRY_RUN            print each command but do not run it; globs match
                         nothing, temp files are still created
    """

    def __init__(self, mode: ExecMode = ExecMode.NORMAL_RUN, console: Optional[Console] = None):
        self.mode = ExecMode(mode)
        self._console = console

    @classmethod
    def normal_run(cls) -> Executor:
        return cls(ExecMode.NORMAL_RUN)

    @classmethod
    def with_echo(cls) -> Executor:
        return cls(ExecMode.NORMAL_WITH_ECHO)

    @classmethod
    def with_label(cls) -> Executor:
        return cls(ExecMode.NORMAL_WITH_LABEL)

    @classmethod
    def dry_run(cls) -> Executor:
        return cls(ExecMode.DRY_RUN)

    def __repr__(self) -> str:
        return f"Executor({self.mode.name})"

    @property
    def console(self) -> Console:
        return self._console if self._console is not None else get_console()

    @property
    def echoes(self) -> bool:
        return self.mode in (ExecMode.NORMAL_WITH_ECHO, ExecMode.DRY_RUN)

    @staticmethod
    def _get_dir(fromdir: Optional[Path]) -> Path:
        return Path(fromdir) if fromdir is not None else Path.cwd()

    @staticmethod
    def _check_dir(tgtdir: Path) -> Optional[OSError]:
        if tgtdir.is_dir():
            return None
        if tgtdir.exists():
            return NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), str(tgtdir))
        return FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(tgtdir))

    def run_executable(
        self,
        label: str,
        exe_file: Path,
        args: List[str],
        env: EnvSpec,
        fromdir: Optional[Path],
    ) -> RunResult:
        try:
            tgtdir = self._get_dir(fromdir)
        except OSError as e:
            return BadDirectory(Path("."), e)

        if self.mode is ExecMode.NORMAL_WITH_LABEL:
            self.console.print_label(label)
        elif self.echoes:
            self.console.print_command(os.fspath(exe_file), args, tgtdir)

        if self.mode is ExecMode.DRY_RUN:
            return RunOk()

        dir_error = self._check_dir(tgtdir)
        if dir_error is not None:
            return BadDirectory(tgtdir, dir_error)

        try:
            proc = subprocess.run(
                [os.fspath(exe_file), *args],
                cwd=str(tgtdir),
                env=env.realize(os.environ),
                capture_output=True,
                text=True,
                errors="replace",
            )
        except OSError as e:
            return SpawnFailed(e)

        if proc.returncode != 0:
            # Negative return codes mean the child was killed by a signal.
            code = proc.returncode if proc.returncode > 0 else None
            return NonzeroExit(code, proc.stderr)
        return RunOk()

    def run_function(
        self,
        name: str,
        call: FunctionCall,
        inpfiles: ActualFile,
        outfile: ActualFile,
        fromdir: Optional[Path],
    ) -> RunResult:
        try:
            tgtdir = self._get_dir(fromdir)
        except OSError as e:
            return BadDirectory(Path("."), e)

        if self.mode is ExecMode.NORMAL_WITH_LABEL:
            self.console.print_label(name, call=True)
        elif self.echoes:
            self.console.print_call(name, inpfiles, outfile, tgtdir)

        if self.mode is ExecMode.DRY_RUN:
            return RunOk()

        try:
            call(tgtdir, inpfiles, outfile)
        except Exception as e:
            return CallbackFailed(e)
        return RunOk()

    def glob_search(self, globpat: str) -> List[Path]:
        if self.mode is ExecMode.DRY_RUN:
            return []
        return [Path(p) for p in sorted(glob.glob(globpat))]

    def mk_tempfile(self, suffix: str) -> TempFile:
        # Created even on a dry run: its name goes into the argument lists.
        tf = TempFile.create(suffix)
        if self.mode is ExecMode.NORMAL_WITH_LABEL:
            self.console.print_tempfile(tf.path)
        return tf
