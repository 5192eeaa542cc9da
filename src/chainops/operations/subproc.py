# operations/subproc.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from ..envspec import EnvSpec
from ..errors import ChainError
from ..executable import Append, Executable, ExeFileSpec, NoFileUsed, Option, ViaCall
from ..execution import (
    BadDirectory,
    CallbackFailed,
    NonzeroExit,
    OsRun,
    RunOk,
    SpawnFailed,
)
from ..files import (
    ActualFile,
    FileArg,
    FilesPrep,
    FileTransformation,
    NoActualFile,
    PathLike,
    fail_missing,
    setup_file,
)
from .generic import OpInterface


class SubProcOperation(FilesPrep, OpInterface):
    """
    A single command to run as a sub-process: the Executable template, the
    arguments specific to this invocation, its environment, and its input
    and output files.

    Builder methods return self so they can be chained:

        SubProcOperation(cc).set_dir("src/").set_input_file(FileArg.loc("foo.c"))
    """

    def __init__(self, executing: Executable):
        self.name = executing.name
        self.exec = executing
        self.args: List[str] = []
        self._env = EnvSpec.inherit()
        self.files = FileTransformation()

    def __repr__(self) -> str:
        return (
            f"SubProcOperation({self.name!r}, {self.exec!r}, args={self.args!r}, "
            f"env={self._env!r}, {self.files!r})"
        )

    def clone(self) -> SubProcOperation:
        op = SubProcOperation(self.exec)
        op.name = self.name
        op.args = list(self.args)
        op._env = self._env
        op.files = self.files.copy()
        return op

    def set_executable(self, exe: PathLike) -> SubProcOperation:
        """Changes the command to execute (and the label to match)."""
        self.exec = self.exec.set_exe(exe)
        self.name = self.exec.name
        return self

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    @property
    def env(self) -> EnvSpec:
        return self._env

    def clear_env(self) -> SubProcOperation:
        """
        Run in an empty environment.  Discards any previous environment
        settings; by default the current environment is inherited.
        """
        self._env = EnvSpec.blank()
        return self

    def set_base_env(self, base_env: EnvSpec) -> SubProcOperation:
        """
        Use `base_env` as the starting point for this operation's own
        settings (e.g. a chain's environment under a stage's).
        """
        self._env = self._env.set_base(base_env)
        return self

    def set_env(self, var_name: str, var_value: str) -> SubProcOperation:
        """Set a variable; later settings of the same variable win."""
        self._env = self._env.add(var_name, var_value)
        return self

    def prepend_env(self, var: str, value: str, sep: str) -> SubProcOperation:
        """
        Put `value` in front of the variable's value, separated by `sep`.  If
        the variable is not set this becomes its value.
        """
        self._env = self._env.prepend(var, value, sep)
        return self

    def append_env(self, var: str, value: str, sep: str) -> SubProcOperation:
        """
        Put `value` after the variable's value, separated by `sep`.  If the
        variable is not set this becomes its value.
        """
        self._env = self._env.append(var, value, sep)
        return self

    def unset_env(self, var_name: str) -> SubProcOperation:
        """Remove a variable; not an error if it does not exist."""
        self._env = self._env.rmv(var_name)
        return self

    # ------------------------------------------------------------------
    # Arguments and files
    # ------------------------------------------------------------------

    def push_arg(self, arg: str) -> SubProcOperation:
        """Adds an argument for this invocation (after the Executable's own)."""
        self.args.append(os.fspath(arg))
        return self

    def emit_output_file_first(self) -> bool:
        """
        Output option before positional inputs, since some command parsers
        require options first.  Otherwise the order is input then output
        (e.g. "cp inpfile outfile").
        """
        return isinstance(self.exec.out_file, Option) and isinstance(self.exec.inp_file, Append)

    def finalize_args(
        self,
        executor: OsRun,
        cwd: Optional[PathLike] = None,
    ) -> Tuple[List[str], Tuple[ActualFile, ActualFile]]:
        """
        The full argument list for the command, with the input and output
        files resolved and inserted.  Returns the args and the (input, output)
        ActualFiles; hold those until the command finishes so temp files
        survive.
        """
        args = list(self.exec.base_args) + list(self.args)
        files = self._cmd_file_setup(executor, args, cwd)
        return args, files

    def _cmd_file_setup(
        self,
        executor: OsRun,
        args: List[str],
        cwd: Optional[PathLike],
    ) -> Tuple[ActualFile, ActualFile]:
        # Order matters: each setup appends to args.
        inpfiles: ActualFile = NoActualFile()
        outfile: ActualFile = NoActualFile()
        try:
            if self.emit_output_file_first():
                outfile = self._setup_output(executor, args, cwd)
                inpfiles = self._setup_inputs(executor, args, cwd)
            else:
                inpfiles = self._setup_inputs(executor, args, cwd)
                outfile = self._setup_output(executor, args, cwd)
        except ChainError:
            inpfiles.release()
            outfile.release()
            raise
        return inpfiles, outfile

    def _setup_inputs(self, executor: OsRun, args: List[str], cwd: Optional[PathLike]) -> ActualFile:
        inpfiles: ActualFile = NoActualFile()
        try:
            for inpf in self.files.inp_filenames:
                df = self._setup_exe_file(executor, args, cwd, self.exec.inp_file, inpf, fail_missing)
                inpfiles = inpfiles.extend(df)
        except ChainError as e:
            inpfiles.release()
            raise e.add_context(f"setting input file for {self.exec.name}")
        return inpfiles

    def _setup_output(self, executor: OsRun, args: List[str], cwd: Optional[PathLike]) -> ActualFile:
        try:
            return self._setup_exe_file(
                executor, args, cwd, self.exec.out_file, self.files.out_filename, fail_missing
            )
        except ChainError as e:
            raise e.add_context(f"setting output file for {self.exec.name}")

    def _setup_exe_file(
        self,
        executor: OsRun,
        args: List[str],
        cwd: Optional[PathLike],
        filespec: ExeFileSpec,
        candidate: FileArg,
        on_missing: Callable[[], ActualFile],
    ) -> ActualFile:
        """
        Resolve one FileArg and insert it into args as `filespec` says.  The
        returned file may own a temp file, so keep it until done.
        """
        if isinstance(filespec, NoFileUsed):
            return NoActualFile()

        sf = setup_file(executor, candidate, on_missing)
        try:
            if isinstance(filespec, Append):
                args.extend(os.fspath(p) for p in _paths_of(sf))
            elif isinstance(filespec, Option):
                fnames = ",".join(os.fspath(p) for p in _paths_of(sf))
                if filespec.flag.endswith("="):
                    args.append(filespec.flag + fnames)
                else:
                    args.append(filespec.flag)
                    args.append(fnames)
            elif isinstance(filespec, ViaCall):
                viadir = Path(cwd) if cwd is not None else None
                try:
                    filespec.fn(args, viadir, sf)
                except ChainError:
                    raise
                except Exception as e:
                    raise ChainError.executing(self.exec.name, args, e, viadir) from e
            else:
                raise ChainError.unsupported_file(self.exec.name, candidate)
        except ChainError:
            sf.release()
            raise
        return sf

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    def _run_cmd(
        self,
        executor: OsRun,
        cwd: Optional[PathLike],
        outfile: ActualFile,
        args: List[str],
    ) -> ActualFile:
        fromdir = self.files.resolve_dir(cwd)
        tool = self.exec.name
        result = executor.run_executable(self.label(), self.exec.exe_file, args, self._env, fromdir)
        if isinstance(result, RunOk):
            return outfile
        if isinstance(result, CallbackFailed):
            raise ChainError.executing(tool, args, result.error, fromdir) from result.error
        if isinstance(result, SpawnFailed):
            raise ChainError.spawn_setup_failed(tool, args, result.error, fromdir) from result.error
        if isinstance(result, NonzeroExit):
            raise ChainError.nonzero_exit(tool, args, result.code, fromdir, result.stderr)
        if isinstance(result, BadDirectory):
            raise ChainError.bad_directory(tool, result.path, result.error) from result.error
        raise ChainError.invalid_operation(f"Unexpected run result for {tool!r}: {result!r}")

    def label(self) -> str:
        return self.name

    def set_label(self, new_label: str) -> SubProcOperation:
        self.name = new_label
        return self

    def execute(self, executor: OsRun, cwd: Optional[PathLike] = None) -> ActualFile:
        args, (inpfiles, outfile) = self.finalize_args(executor, cwd)
        try:
            return self._run_cmd(executor, cwd, outfile, args)
        except ChainError:
            outfile.release()
            raise
        finally:
            inpfiles.release()


def _paths_of(sf: ActualFile) -> List[Path]:
    # A glob that matched nothing contributes no paths.
    if isinstance(sf, NoActualFile):
        return []
    return sf.to_paths()
