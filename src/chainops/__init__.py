from .envspec import EnvChange, EnvSpec
from .errors import ChainError, ErrorKind, TOOL_HINTS
from .executable import Append, Executable, ExeFileSpec, NoFileUsed, Option, ViaCall
from .execution import (
    BadDirectory,
    CallbackFailed,
    ExecMode,
    Executor,
    NonzeroExit,
    OsRun,
    RunOk,
    RunResult,
    SpawnFailed,
)
from .files import (
    TBD,
    ActualFile,
    FileArg,
    FileRef,
    FilesPrep,
    FileTransformation,
    GlobIn,
    Loc,
    MultiFile,
    NoActualFile,
    SingleFile,
    StaticFile,
    Temp,
    TempFile,
    setup_file,
)
from .operations import (
    Activation,
    ChainedOpRef,
    ChainedOps,
    FunctionOperation,
    OpInterface,
    SubProcOperation,
    execute_here,
)

__all__ = [
    "Activation", "ActualFile", "Append", "BadDirectory", "CallbackFailed",
    "ChainError", "ChainedOpRef", "ChainedOps", "EnvChange", "EnvSpec",
    "ErrorKind", "ExeFileSpec", "ExecMode", "Executable", "Executor",
    "FileArg", "FileRef", "FileTransformation", "FilesPrep", "FunctionOperation",
    "GlobIn", "Loc", "MultiFile", "NoActualFile", "NoFileUsed", "NonzeroExit",
    "OpInterface", "Option", "OsRun", "RunOk", "RunResult", "SingleFile",
    "SpawnFailed", "StaticFile", "SubProcOperation", "TBD", "TOOL_HINTS", "Temp",
    "TempFile", "ViaCall", "execute_here", "setup_file",
]
