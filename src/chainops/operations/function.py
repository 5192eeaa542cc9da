# operations/function.py
from __future__ import annotations

from typing import Optional

from ..errors import ChainError
from ..execution import (
    BadDirectory,
    CallbackFailed,
    FunctionCall,
    NonzeroExit,
    OsRun,
    RunOk,
    SpawnFailed,
)
from ..files import (
    ActualFile,
    FilesPrep,
    FileTransformation,
    NoActualFile,
    PathLike,
    no_file,
    setup_file,
)
from .generic import OpInterface


class FunctionOperation(FilesPrep, OpInterface):
    """
    An operation performed by calling a local function instead of running an
    Executable in a sub-process.  Useful for local processing in the middle
    of a chain, e.g. writing a tar file with the tarfile module rather than
    running `tar`.

    The function is called as fn(directory, input_files, output_file).  The
    directory is where the operation would have run as a sub-process; the
    process's current directory is *not* changed, so the function must
    interpret relative file paths against it.  Raise to signal failure.

    Only an output file is passed on to the next operation in a chain;
    anything richer has to be serialized into that file.
    """

    def __init__(self, name: str, call: FunctionCall):
        self.name = name
        self.call = call
        self.files = FileTransformation()

    @classmethod
    def calling(cls, name: str, call: FunctionCall) -> FunctionOperation:
        return cls(name, call)

    def __repr__(self) -> str:
        return f"Local function call {self.name!r} {self.files!r}"

    def clone(self) -> FunctionOperation:
        op = FunctionOperation(self.name, self.call)
        op.files = self.files.copy()
        return op

    def push_arg(self, arg: str) -> FunctionOperation:
        # No argument list for a function call.
        return self

    def label(self) -> str:
        return self.name

    def set_label(self, new_label: str) -> FunctionOperation:
        self.name = new_label
        return self

    def _run_with_files(
        self,
        executor: OsRun,
        cwd: Optional[PathLike],
        inpfiles: ActualFile,
        outfile: ActualFile,
    ) -> ActualFile:
        fromdir = self.files.resolve_dir(cwd)
        tool = repr(self)
        result = executor.run_function(self.name, self.call, inpfiles, outfile, fromdir)
        if isinstance(result, RunOk):
            return outfile
        if isinstance(result, CallbackFailed):
            raise ChainError.executing(tool, [], result.error, fromdir) from result.error
        if isinstance(result, SpawnFailed):
            raise ChainError.spawn_setup_failed(tool, [], result.error, fromdir) from result.error
        if isinstance(result, NonzeroExit):
            raise ChainError.nonzero_exit(tool, [], result.code, fromdir, result.stderr)
        if isinstance(result, BadDirectory):
            raise ChainError.bad_directory(tool, result.path, result.error) from result.error
        raise ChainError.invalid_operation(f"Unexpected run result for {self.name!r}: {result!r}")

    def execute(self, executor: OsRun, cwd: Optional[PathLike] = None) -> ActualFile:
        # Unset files are simply absent for a function call.
        inpfiles: ActualFile = NoActualFile()
        outfile: ActualFile = NoActualFile()
        try:
            for inpf in self.files.inp_filenames:
                inpfiles = inpfiles.extend(setup_file(executor, inpf, no_file))
            outfile = setup_file(executor, self.files.out_filename, no_file)
            return self._run_with_files(executor, cwd, inpfiles, outfile)
        except ChainError:
            outfile.release()
            raise
        finally:
            inpfiles.release()
