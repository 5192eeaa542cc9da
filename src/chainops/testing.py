# testing.py
"""
In-process OsRun that records what would have been run instead of running
it.  Lets tests (and tools that want to inspect a chain) see the exact
sequence of commands, arguments, environments and directories a chain
produces.

    coll = CallCollector()
    chain.execute(coll, "/work")
    assert [r.name for r in coll.execs] == ["cc", "cc", "ld"]
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from .envspec import EnvSpec
from .execution import CallbackFailed, FunctionCall, OsRun, RunOk, RunResult
from .files import ActualFile, TempFile


@dataclass
class ExecRecord:
    """One run_executable request."""
    name: str
    exe: Path
    args: List[str]
    env: EnvSpec
    dir: Optional[Path]


@dataclass
class CallRecord:
    """One run_function request; file arguments are recorded as paths."""
    fname: str
    inpfiles: List[Path]
    outfile: List[Path]
    dir: Optional[Path]


Record = Union[ExecRecord, CallRecord]


@dataclass
class CallCollector(OsRun):
    """
    Records every request and reports success.

    glob_results maps a glob pattern (as built from a FileArg.glob_in) to
    the paths it should match; unknown patterns match nothing, as in a dry
    run.  fail_on maps an operation label (or function name) to the result
    to report for it instead of RunOk.  Temp files are really created.
    With call_functions set, function operations are actually called.
    """
    glob_results: Dict[str, List[Path]] = field(default_factory=dict)
    fail_on: Dict[str, RunResult] = field(default_factory=dict)
    records: List[Record] = field(default_factory=list)
    globs: List[str] = field(default_factory=list)
    tempfiles: List[Path] = field(default_factory=list)
    call_functions: bool = False

    @property
    def execs(self) -> List[ExecRecord]:
        return [r for r in self.records if isinstance(r, ExecRecord)]

    @property
    def calls(self) -> List[CallRecord]:
        return [r for r in self.records if isinstance(r, CallRecord)]

    def run_executable(
        self,
        label: str,
        exe_file: Path,
        args: List[str],
        env: EnvSpec,
        fromdir: Optional[Path],
    ) -> RunResult:
        self.records.append(ExecRecord(label, Path(exe_file), list(args), env, fromdir))
        return self.fail_on.get(label, RunOk())

    def run_function(
        self,
        name: str,
        call: FunctionCall,
        inpfiles: ActualFile,
        outfile: ActualFile,
        fromdir: Optional[Path],
    ) -> RunResult:
        self.records.append(
            CallRecord(
                name,
                [r.path for r in inpfiles],
                [r.path for r in outfile],
                fromdir,
            )
        )
        if name in self.fail_on:
            return self.fail_on[name]
        if self.call_functions:
            try:
                call(fromdir if fromdir is not None else Path.cwd(), inpfiles, outfile)
            except Exception as e:
                return CallbackFailed(e)
        return RunOk()

    def glob_search(self, globpat: str) -> List[Path]:
        self.globs.append(globpat)
        return [Path(p) for p in self.glob_results.get(globpat, [])]

    def mk_tempfile(self, suffix: str) -> TempFile:
        tf = TempFile.create(suffix)
        self.tempfiles.append(tf.path)
        return tf
