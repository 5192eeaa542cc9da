# operations/chained.py
"""
Chained operations.

A ChainedOps holds a sequence of operations (sub-process or function calls)
plus the input file, output file and directory of the chain as a whole.
Executing the chain runs each enabled operation in order; the output file of
one becomes the input file of the next unless that next operation had its
input set explicitly.

Typical use:

    build = ChainedOps("build myapp")
    compile_foo = build.push_op(SubProcOperation(cc))
    compile_foo.set_dir("src/").set_input_file(FileArg.loc("foo.c"))
    ...
    build.set_output_file(FileArg.loc("myapp.exe"))
    build.execute(Executor.dry_run(), "/home/user/myapp-src")

push_op()/push_call() store a copy of the operation and return a
ChainedOpRef: a handle onto that position of the chain that can keep
adjusting the operation (or disable it) before the chain runs.
"""
from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Union

from ..envspec import EnvSpec
from ..errors import ChainError
from ..execution import OsRun
from ..files import (
    ActualFile,
    FileArg,
    FilesPrep,
    FileTransformation,
    Loc,
    NoActualFile,
    PathLike,
    is_missing_file,
)
from ..ui.console import get_console
from .function import FunctionOperation
from .generic import OpInterface
from .subproc import SubProcOperation

RunnableOp = Union[SubProcOperation, FunctionOperation]


class Activation(Enum):
    """Whether an operation in a chain is performed when the chain runs."""
    ENABLED = "enabled"
    DISABLED = "disabled"


@dataclass
class _ChainState:
    """Shared between a ChainedOps and every ChainedOpRef handed out by it."""
    name: str
    chain: List[RunnableOp] = field(default_factory=list)
    files: FileTransformation = field(default_factory=FileTransformation)
    env: EnvSpec = field(default_factory=EnvSpec.inherit)
    # No entry means Activation.ENABLED.
    opstate: Dict[int, Activation] = field(default_factory=dict)
    # Operations whose input was set explicitly; not overwritten by threading.
    preset_inputs: Set[int] = field(default_factory=set)
    # Serializes execute() against itself and against handle mutations.
    lock: threading.RLock = field(default_factory=threading.RLock)


class ChainedOps(FilesPrep, OpInterface):

    def __init__(self, label: str):
        self._state = _ChainState(name=label)
        self.executions = 0

    def __repr__(self) -> str:
        s = self._state
        return (
            f"ChainedOps({s.name!r}, {s.chain!r}, {s.files!r}, "
            f"disabled={sorted(i for i, a in s.opstate.items() if a is Activation.DISABLED)}, "
            f"preset_inputs={sorted(s.preset_inputs)})"
        )

    def __len__(self) -> int:
        return len(self._state.chain)

    @property
    def files(self) -> FileTransformation:
        return self._state.files

    @property
    def env(self) -> EnvSpec:
        return self._state.env

    # ------------------------------------------------------------------
    # Building the chain
    # ------------------------------------------------------------------

    def _push(self, op: RunnableOp) -> ChainedOpRef:
        with self._state.lock:
            self._state.chain.append(op.clone())
            opidx = len(self._state.chain) - 1
            if op.has_input_file():
                self._state.preset_inputs.add(opidx)
        return ChainedOpRef(opidx, self._state)

    def push_op(self, op: SubProcOperation) -> ChainedOpRef:
        """
        Adds a sub-process operation to the end of the chain and returns a
        handle for further changes to it.  If the operation already has an
        input file, that input is kept instead of the previous operation's
        output.
        """
        return self._push(op)

    def push_call(self, op: FunctionOperation) -> ChainedOpRef:
        """Adds a function operation to the end of the chain."""
        return self._push(op)

    def stage(self, opidx: int) -> ChainedOpRef:
        """Handle for an operation already in the chain."""
        if not 0 <= opidx < len(self._state.chain):
            raise IndexError(f"chain {self._state.name!r} has no operation {opidx}")
        return ChainedOpRef(opidx, self._state)

    # ------------------------------------------------------------------
    # Chain-wide files (FilesPrep), under the chain lock
    # ------------------------------------------------------------------

    def set_dir(self, tgtdir: PathLike) -> ChainedOps:
        """
        Directory for the whole chain.  Operations with a relative directory
        run beneath it; an absolute operation directory overrides it.
        Without this, operations run in the directory given to execute (or
        the process's current directory).
        """
        with self._state.lock:
            self._state.files.set_dir(tgtdir)
        return self

    def set_input_file(self, fname: FileArg) -> ChainedOps:
        """Input file(s) of the chain, given to the first enabled operation."""
        with self._state.lock:
            self._state.files.set_input_file(fname)
        return self

    def add_input_file(self, fname: FileArg) -> ChainedOps:
        with self._state.lock:
            self._state.files.add_input_file(fname)
        return self

    def set_output_file(self, fname: FileArg) -> ChainedOps:
        """
        Output file of the chain.  Only an explicit location replaces the
        output of the last enabled operation.
        """
        with self._state.lock:
            self._state.files.set_output_file(fname)
        return self

    # ------------------------------------------------------------------
    # Chain-wide environment, the base for every sub-process operation
    # ------------------------------------------------------------------

    def clear_env(self) -> ChainedOps:
        with self._state.lock:
            self._state.env = EnvSpec.blank()
        return self

    def set_env(self, var_name: str, var_value: str) -> ChainedOps:
        with self._state.lock:
            self._state.env = self._state.env.add(var_name, var_value)
        return self

    def prepend_env(self, var: str, value: str, sep: str) -> ChainedOps:
        with self._state.lock:
            self._state.env = self._state.env.prepend(var, value, sep)
        return self

    def append_env(self, var: str, value: str, sep: str) -> ChainedOps:
        with self._state.lock:
            self._state.env = self._state.env.append(var, value, sep)
        return self

    def unset_env(self, var_name: str) -> ChainedOps:
        with self._state.lock:
            self._state.env = self._state.env.rmv(var_name)
        return self

    # ------------------------------------------------------------------
    # OpInterface
    # ------------------------------------------------------------------

    def label(self) -> str:
        return self._state.name

    def set_label(self, new_label: str) -> ChainedOps:
        with self._state.lock:
            self._state.name = new_label
        return self

    def execute(self, executor: OsRun, cwd: Optional[PathLike] = None) -> ActualFile:
        """
        Run every enabled operation in order, making each operation's output
        the next one's input.  Returns the output of the last enabled
        operation (NoActualFile for an empty or fully disabled chain).

        `cwd` is the default directory; the chain's own directory and each
        operation's directory are resolved beneath it.  Stops at the first
        failure; intermediate temp files are removed either way.
        """
        with self._state.lock:
            self.executions += 1
            state = self._state

            enabled = [
                i for i in range(len(state.chain))
                if state.opstate.get(i, Activation.ENABLED) is not Activation.DISABLED
            ]
            for i in sorted(set(range(len(state.chain))) - set(enabled)):
                get_console().print_debug(f"{state.name}: skipping disabled {state.chain[i].label()}")
            if not enabled:
                # Empty, or every operation disabled: no output generated.
                return NoActualFile()

            first_op, last_op = enabled[0], enabled[-1]
            chain_inps = list(state.files.inp_filenames)
            if chain_inps:
                state.chain[first_op].set_input_file(chain_inps[0])
                for f in chain_inps[1:]:
                    state.chain[first_op].add_input_file(f)

            if state.files.has_explicit_output_file():
                state.chain[last_op].set_output_file(state.files.out_filename)

            tgtdir = state.files.resolve_dir(cwd)
            return self._execute_chain(executor, enabled, tgtdir)

    def _runnable(self, op: RunnableOp) -> RunnableOp:
        if isinstance(op, SubProcOperation) and not self._state.env.is_plain_inherit:
            return op.clone().set_base_env(self._state.env)
        return op

    def _execute_chain(
        self,
        executor: OsRun,
        enabled: List[int],
        tgtdir: Optional[PathLike],
    ) -> ActualFile:
        state = self._state
        console = get_console()
        # Output of the previous operation; kept until the next one finishes.
        previous: ActualFile = NoActualFile()
        try:
            for pos, opidx in enumerate(enabled):
                op = state.chain[opidx]
                outfile = self._runnable(op).execute(executor, tgtdir)
                if len(previous):
                    console.print_debug(f"{state.name}: releasing {[os.fspath(r.path) for r in previous]}")
                previous.release()
                previous = outfile

                if pos == len(enabled) - 1:
                    return outfile

                nxtidx = enabled[pos + 1]
                try:
                    paths = outfile.to_paths()
                except ChainError as e:
                    if not is_missing_file(e):
                        raise e.add_context(f"output file for chained operation {op.label()}")
                    # No output file: the next operation may not need one; if
                    # it does, its own setup will report it.
                    console.print_debug(f"{state.name}: {op.label()} produced no output file")
                    continue

                if not paths:
                    continue
                if nxtidx in state.preset_inputs:
                    console.print_debug(
                        f"{state.name}: keeping preset input of {state.chain[nxtidx].label()}"
                    )
                    continue
                nxt = state.chain[nxtidx]
                nxt.set_input_file(Loc(paths[0]))
                for p in paths[1:]:
                    nxt.add_input_file(Loc(p))
                console.print_debug(f"{state.name}: {op.label()} -> {nxt.label()}: {paths}")
        except Exception:
            previous.release()
            raise
        # Unreachable: enabled is never empty here.
        raise ChainError.invalid_operation(f"chain {state.name!r} has no operation to run")


class ChainedOpRef(FilesPrep):
    """
    Handle onto one operation in a ChainedOps, returned by push_op/push_call.
    Changes made through it apply to the operation as stored in the chain.
    """

    def __init__(self, opidx: int, state: _ChainState):
        self.opidx = opidx
        self._state = state

    def __repr__(self) -> str:
        return f"ChainedOpRef({self.opidx}, {self.operation!r})"

    @property
    def operation(self) -> RunnableOp:
        return self._state.chain[self.opidx]

    @property
    def files(self) -> FileTransformation:
        return self.operation.files

    def label(self) -> str:
        return self.operation.label()

    def set_label(self, new_label: str) -> ChainedOpRef:
        with self._state.lock:
            self.operation.set_label(new_label)
        return self

    def push_arg(self, arg: str) -> ChainedOpRef:
        """Add an argument; ignored for a function operation."""
        with self._state.lock:
            self.operation.push_arg(arg)
        return self

    def active(self, state: Activation) -> ChainedOpRef:
        """
        Whether this operation runs when the chain executes.  Operations are
        Activation.ENABLED when added.
        """
        with self._state.lock:
            if state is Activation.ENABLED:
                self._state.opstate.pop(self.opidx, None)
            else:
                self._state.opstate[self.opidx] = state
        return self

    def is_active(self) -> bool:
        return self._state.opstate.get(self.opidx, Activation.ENABLED) is Activation.ENABLED

    def set_dir(self, tgtdir: PathLike) -> ChainedOpRef:
        """
        Directory for this operation: relative to the chain's directory
        unless absolute.
        """
        with self._state.lock:
            self.operation.set_dir(tgtdir)
        return self

    def set_input_file(self, fname: FileArg) -> ChainedOpRef:
        """
        Input file of this operation.  It will not be replaced by the previous
        operation's output.  For the first enabled operation the chain's own
        input file (if any) still takes precedence.
        """
        with self._state.lock:
            self.operation.set_input_file(fname)
            self._state.preset_inputs.add(self.opidx)
        return self

    def add_input_file(self, fname: FileArg) -> ChainedOpRef:
        """Same as set_input_file, but adds to the existing input files."""
        with self._state.lock:
            self.operation.add_input_file(fname)
            self._state.preset_inputs.add(self.opidx)
        return self

    def set_output_file(self, fname: FileArg) -> ChainedOpRef:
        """
        Output file of this operation (and so the next one's input unless
        that has a preset input).  Ignored for the last enabled operation when
        the chain has an explicit output file.
        """
        with self._state.lock:
            self.operation.set_output_file(fname)
        return self
