# files.py
"""
File handling for operations.

Two layers:

  FileArg      -- what the user declares (a location, a glob, a temp file,
                  or "to be determined").  Plain values, no I/O.
  ActualFile   -- what a FileArg turns into at execution time.  Holds zero or
                  more FileRefs; a TempFile ref owns its file on disk and
                  deletes it when released (or garbage collected).

Aliasing rule: a TempFile has exactly one owner.  It refuses copy/deepcopy,
and an ActualFile passed to `extend` must not be used afterwards.
"""
from __future__ import annotations

import os
import tempfile
import weakref
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterator, List, Optional, Sequence, Union

from .errors import ChainError, ErrorKind

if TYPE_CHECKING:
    from .execution import OsRun

PathLike = Union[str, "os.PathLike[str]"]


# ---------------------------------------------------------------------
# Declared files
# ---------------------------------------------------------------------

class FileArg:
    """Designates a file that can be identified by name on the command line."""

    @staticmethod
    def loc(fpath: PathLike) -> Loc:
        """An actual file path (may or may not currently exist)."""
        return Loc(fpath)

    @staticmethod
    def temp(suffix: str = "") -> Temp:
        """A temporary file created at execution; suffix may be blank."""
        return Temp(suffix)

    @staticmethod
    def glob_in(dpath: PathLike, pattern: str) -> GlobIn:
        """All files matching `pattern` in directory `dpath`, found at execution."""
        return GlobIn(dpath, pattern)

    @staticmethod
    def tbd() -> TBD:
        """Placeholder; fails at execution if still unset where a file is needed."""
        return TBD()


@dataclass(frozen=True)
class Loc(FileArg):
    path: Path

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path))


@dataclass(frozen=True)
class GlobIn(FileArg):
    dir: Path
    pattern: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "dir", Path(self.dir))


@dataclass(frozen=True)
class Temp(FileArg):
    suffix: str = ""


@dataclass(frozen=True)
class TBD(FileArg):
    pass


# ---------------------------------------------------------------------
# Realized files
# ---------------------------------------------------------------------

class FileRef:
    """Reference to a single actual file."""
    path: Path


@dataclass(frozen=True)
class StaticFile(FileRef):
    path: Path

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path))


def _unlink_quietly(name: str) -> None:
    try:
        os.unlink(name)
    except FileNotFoundError:
        pass


class TempFile(FileRef):
    """
    Owned temporary file.  The file is removed when `release()` is called or,
    failing that, when this object is garbage collected.
    """

    def __init__(self, path: PathLike):
        self._path = Path(path)
        self._finalizer = weakref.finalize(self, _unlink_quietly, os.fspath(self._path))

    @classmethod
    def create(cls, suffix: str = "") -> TempFile:
        fd, name = tempfile.mkstemp(suffix=suffix)
        os.close(fd)
        return cls(name)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def released(self) -> bool:
        return not self._finalizer.alive

    def release(self) -> None:
        self._finalizer()

    def __copy__(self):
        raise TypeError("TempFile has unique ownership and cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("TempFile has unique ownership and cannot be copied")

    def __repr__(self) -> str:
        return f"TempFile({str(self._path)!r})"


class ActualFile:
    """The actual file(s) used as input or output of an operation."""

    refs: Sequence[FileRef] = ()

    @staticmethod
    def of(refs: Sequence[FileRef]) -> ActualFile:
        refs = list(refs)
        if not refs:
            return NoActualFile()
        return MultiFile(refs)

    def __len__(self) -> int:
        return len(self.refs)

    def __iter__(self) -> Iterator[FileRef]:
        return iter(self.refs)

    def extend(self, more: ActualFile) -> ActualFile:
        """Combine with `more`, preserving order.  Both inputs are consumed."""
        if isinstance(self, NoActualFile):
            return more
        if isinstance(more, NoActualFile):
            return self
        return MultiFile(list(self.refs) + list(more.refs))

    @staticmethod
    def _get_path(cwd: Optional[PathLike], fref: FileRef) -> Path:
        if cwd is None:
            return fref.path
        return Path(cwd) / fref.path

    def to_path(self, cwd: Optional[PathLike] = None) -> Path:
        """
        The single path of this file.  Relative paths are placed beneath `cwd`
        when given.  Raises MISSING_FILE for no file and
        UNSUPPORTED_ACTUAL_FILE for multiple files.
        """
        if isinstance(self, SingleFile):
            return self._get_path(cwd, self.ref)
        if isinstance(self, NoActualFile):
            raise ChainError.missing_file()
        raise ChainError.unsupported_actual_file(repr(self))

    def to_paths(self, cwd: Optional[PathLike] = None) -> List[Path]:
        """All paths of this file; raises MISSING_FILE when there is no file."""
        if isinstance(self, NoActualFile):
            raise ChainError.missing_file()
        return [self._get_path(cwd, r) for r in self.refs]

    def release(self) -> None:
        """Delete any owned temporary files now."""
        for ref in self.refs:
            if isinstance(ref, TempFile):
                ref.release()


@dataclass
class NoActualFile(ActualFile):
    @property
    def refs(self) -> Sequence[FileRef]:
        return ()


@dataclass
class SingleFile(ActualFile):
    ref: FileRef

    @property
    def refs(self) -> Sequence[FileRef]:
        return (self.ref,)


@dataclass
class MultiFile(ActualFile):
    files: List[FileRef] = field(default_factory=list)

    @property
    def refs(self) -> Sequence[FileRef]:
        return tuple(self.files)


# ---------------------------------------------------------------------
# Input/output configuration of an operation
# ---------------------------------------------------------------------

@dataclass
class FileTransformation:
    inp_filenames: List[FileArg] = field(default_factory=list)
    out_filename: FileArg = field(default_factory=TBD)
    in_dir: Optional[Path] = None

    def __repr__(self) -> str:
        return (
            f"transforming {self.inp_filenames!r} into {self.out_filename!r} "
            f"in {str(self.in_dir) if self.in_dir is not None else None!r}"
        )

    def copy(self) -> FileTransformation:
        return FileTransformation(list(self.inp_filenames), self.out_filename, self.in_dir)

    def set_dir(self, tgtdir: PathLike) -> FileTransformation:
        self.in_dir = Path(tgtdir)
        return self

    def set_input_file(self, fname: FileArg) -> FileTransformation:
        self.inp_filenames = [fname]
        return self

    def add_input_file(self, fname: FileArg) -> FileTransformation:
        self.inp_filenames.append(fname)
        return self

    def has_input_file(self) -> bool:
        return bool(self.inp_filenames)

    def set_output_file(self, fname: FileArg) -> FileTransformation:
        self.out_filename = fname
        return self

    def has_explicit_output_file(self) -> bool:
        """True only for a Loc output (not TBD, Temp, or a glob)."""
        return isinstance(self.out_filename, Loc)

    def resolve_dir(self, cwd: Optional[PathLike]) -> Optional[Path]:
        """
        Directory an operation runs in: `in_dir` beneath `cwd` (an absolute
        `in_dir` wins), or whichever of the two is set.
        """
        if cwd is None:
            return self.in_dir
        if self.in_dir is None:
            return Path(cwd)
        return Path(cwd) / self.in_dir


class FilesPrep:
    """
    Standard set of methods to prepare an operation by specifying the input
    file(s), output file, and directory in which it is performed.  Requires a
    `files` attribute holding a FileTransformation.
    """

    files: FileTransformation

    def set_dir(self, tgtdir: PathLike):
        """
        Sets the directory from which the operation will be performed.  A
        relative directory is interpreted beneath the directory handed to
        `execute`.  FileArg.loc paths are passed through unchanged and must
        be valid from that directory.
        """
        self.files.set_dir(tgtdir)
        return self

    def set_input_file(self, fname: FileArg):
        """Sets the input file, replacing any previous input files."""
        self.files.set_input_file(fname)
        return self

    def add_input_file(self, fname: FileArg):
        self.files.add_input_file(fname)
        return self

    def has_input_file(self) -> bool:
        return self.files.has_input_file()

    def set_output_file(self, fname: FileArg):
        self.files.set_output_file(fname)
        return self

    def has_explicit_output_file(self) -> bool:
        return self.files.has_explicit_output_file()


# ---------------------------------------------------------------------
# Materialization
# ---------------------------------------------------------------------

def setup_file(
    executor: OsRun,
    candidate: FileArg,
    on_missing: Callable[[], ActualFile],
) -> ActualFile:
    """
    Resolve a FileArg into an ActualFile, consulting the executor for temp
    files and globs.  A returned temp file is deleted once released, so hold
    the result until the file is no longer needed.
    """
    if isinstance(candidate, TBD):
        return on_missing()
    if isinstance(candidate, Loc):
        return SingleFile(StaticFile(candidate.path))
    try:
        if isinstance(candidate, Temp):
            return SingleFile(executor.mk_tempfile(candidate.suffix))
        if isinstance(candidate, GlobIn):
            globpat = os.fspath(candidate.dir) + "/" + candidate.pattern
            return ActualFile.of([StaticFile(p) for p in executor.glob_search(globpat)])
    except OSError as e:
        raise ChainError.executing("file setup", [], e, None) from e
    raise ChainError.unsupported_file("file setup", candidate)


def fail_missing() -> ActualFile:
    raise ChainError.missing_file()


def no_file() -> ActualFile:
    return NoActualFile()


def is_missing_file(err: BaseException) -> bool:
    return isinstance(err, ChainError) and err.kind is ErrorKind.MISSING_FILE
