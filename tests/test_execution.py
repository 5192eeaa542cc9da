from __future__ import annotations

import io
import sys
from pathlib import Path

import pytest

from chainops.envspec import EnvSpec
from chainops.errors import ChainError, ErrorKind
from chainops.executable import Executable, ExeFileSpec
from chainops.execution import (
    BadDirectory,
    CallbackFailed,
    ExecMode,
    Executor,
    NonzeroExit,
    RunOk,
    SpawnFailed,
)
from chainops.files import FileArg, NoActualFile, SingleFile, StaticFile
from chainops.operations import ChainedOps, SubProcOperation
from chainops.ui.console import Console

PYTHON = Path(sys.executable)


def quiet(mode: ExecMode) -> tuple[Executor, io.StringIO]:
    out = io.StringIO()
    return Executor(mode, console=Console(stream=out)), out


def test_modes_and_constructors():
    assert Executor.normal_run().mode is ExecMode.NORMAL_RUN
    assert Executor.with_echo().mode is ExecMode.NORMAL_WITH_ECHO
    assert Executor.with_label().mode is ExecMode.NORMAL_WITH_LABEL
    assert Executor.dry_run().mode is ExecMode.DRY_RUN
    assert Executor("dry-run").mode is ExecMode.DRY_RUN


def test_successful_run(tmp_path):
    ex = Executor.normal_run()
    result = ex.run_executable("py", PYTHON, ["-c", "pass"], EnvSpec.inherit(), tmp_path)
    assert result == RunOk()


def test_nonzero_exit_captures_stderr(tmp_path):
    ex = Executor.normal_run()
    script = "import sys; sys.stderr.write('nope'); sys.exit(3)"
    result = ex.run_executable("py", PYTHON, ["-c", script], EnvSpec.inherit(), tmp_path)
    assert result == NonzeroExit(3, "nope")


def test_spawn_failure(tmp_path):
    ex = Executor.normal_run()
    result = ex.run_executable("x", tmp_path / "no-such-tool", [], EnvSpec.inherit(), tmp_path)
    assert isinstance(result, SpawnFailed)
    assert isinstance(result.error, FileNotFoundError)


def test_bad_directory(tmp_path):
    ex = Executor.normal_run()
    missing = tmp_path / "missing"
    result = ex.run_executable("py", PYTHON, ["-c", "pass"], EnvSpec.inherit(), missing)
    assert isinstance(result, BadDirectory)
    assert result.path == missing
    assert isinstance(result.error, FileNotFoundError)

    afile = tmp_path / "afile"
    afile.write_text("")
    result = ex.run_executable("py", PYTHON, ["-c", "pass"], EnvSpec.inherit(), afile)
    assert isinstance(result, BadDirectory)
    assert isinstance(result.error, NotADirectoryError)


def test_runs_in_directory_with_env(tmp_path, monkeypatch):
    monkeypatch.setenv("CHAINOPS_GONE", "x")
    monkeypatch.setenv("CHAINOPS_PATH", "mid")
    script = (
        "import os; open('env.txt', 'w').write("
        "os.environ.get('CHAINOPS_SET', '') + '|' + "
        "os.environ.get('CHAINOPS_GONE', '<unset>') + '|' + "
        "os.environ['CHAINOPS_PATH'])"
    )
    env = (
        EnvSpec.inherit()
        .add("CHAINOPS_SET", "hello")
        .rmv("CHAINOPS_GONE")
        .prepend("CHAINOPS_PATH", "front", ":")
        .append("CHAINOPS_PATH", "back", ":")
    )
    result = Executor.normal_run().run_executable("py", PYTHON, ["-c", script], env, tmp_path)
    assert result == RunOk()
    assert (tmp_path / "env.txt").read_text() == "hello|<unset>|front:mid:back"


def test_dry_run_prints_and_skips():
    ex, out = quiet(ExecMode.DRY_RUN)
    result = ex.run_executable("tool", Path("/nonexistent/tool"), ["-x", "a"], EnvSpec.inherit(), Path("/w"))
    assert result == RunOk()
    assert out.getvalue() == "#: /nonexistent/tool -x a [in /w]\n"
    assert ex.glob_search("*") == []


def test_echo_prints_then_runs(tmp_path):
    ex, out = quiet(ExecMode.NORMAL_WITH_ECHO)
    result = ex.run_executable("py", PYTHON, ["-c", "pass"], EnvSpec.inherit(), tmp_path)
    assert result == RunOk()
    assert out.getvalue() == f"#: {PYTHON} -c pass [in {tmp_path}]\n"


def test_label_mode(tmp_path):
    ex, out = quiet(ExecMode.NORMAL_WITH_LABEL)
    ex.run_executable("compile", PYTHON, ["-c", "pass"], EnvSpec.inherit(), tmp_path)
    ex.run_function("pack", lambda d, i, o: None, NoActualFile(), NoActualFile(), tmp_path)
    tf = ex.mk_tempfile(".o")
    assert out.getvalue().splitlines() == [
        "#=> compile",
        "=> pack",
        f"Created temp file {tf.path}",
    ]
    tf.release()


def test_silent_run_prints_nothing(tmp_path):
    ex, out = quiet(ExecMode.NORMAL_RUN)
    ex.run_executable("py", PYTHON, ["-c", "pass"], EnvSpec.inherit(), tmp_path)
    tf = ex.mk_tempfile("")
    assert out.getvalue() == ""
    tf.release()


def test_dry_run_function_call_is_echoed_not_called():
    calls = []
    ex, out = quiet(ExecMode.DRY_RUN)
    result = ex.run_function(
        "pack",
        lambda d, i, o: calls.append(d),
        SingleFile(StaticFile("a")),
        SingleFile(StaticFile("b.tar")),
        Path("/w"),
    )
    assert result == RunOk()
    assert calls == []
    assert out.getvalue() == "Call 'pack', input=['a'], output=['b.tar'] [in /w]\n"


def test_run_function_failure(tmp_path):
    def broken(d, i, o):
        raise OSError("no space")

    result = Executor.normal_run().run_function("f", broken, NoActualFile(), NoActualFile(), tmp_path)
    assert isinstance(result, CallbackFailed)
    assert str(result.error) == "no space"


def test_dry_run_still_creates_temp_files():
    ex, _out = quiet(ExecMode.DRY_RUN)
    tf = ex.mk_tempfile(".x")
    assert tf.path.exists()
    tf.release()
    assert not tf.path.exists()


def test_glob_search_sorted(tmp_path):
    for name in ("b.c", "a.c", "c.h"):
        (tmp_path / name).write_text("")
    found = Executor.normal_run().glob_search(f"{tmp_path}/*.c")
    assert found == [tmp_path / "a.c", tmp_path / "b.c"]


COPY_UPPER = "import sys; open(sys.argv[2], 'w').write(open(sys.argv[1]).read().upper())"
COPY_REVERSED = "import sys; open(sys.argv[2], 'w').write(open(sys.argv[1]).read()[::-1])"


def test_real_chain_end_to_end(tmp_path):
    (tmp_path / "in.txt").write_text("abc")
    upper = Executable(PYTHON, ExeFileSpec.append(), ExeFileSpec.append()).push_arg("-c").push_arg(COPY_UPPER)
    reverse = Executable(PYTHON, ExeFileSpec.append(), ExeFileSpec.append()).push_arg("-c").push_arg(COPY_REVERSED)

    chain = ChainedOps("transform")
    chain.push_op(SubProcOperation(upper).set_input_file(FileArg.loc("in.txt")).set_output_file(FileArg.temp(".txt")))
    chain.push_op(SubProcOperation(reverse).set_output_file(FileArg.loc("out.txt")))

    ex, _out = quiet(ExecMode.NORMAL_RUN)
    result = chain.execute(ex, tmp_path)

    assert result.to_path(tmp_path) == tmp_path / "out.txt"
    assert (tmp_path / "out.txt").read_text() == "CBA"


def test_real_chain_failure(tmp_path):
    fail = Executable(PYTHON, ExeFileSpec.append(), ExeFileSpec.none()).push_arg("-c").push_arg(
        "import sys; print('bad input', file=sys.stderr); sys.exit(4)"
    )
    chain = ChainedOps("failing")
    chain.push_op(SubProcOperation(fail).set_input_file(FileArg.loc("whatever")))

    ex, _out = quiet(ExecMode.NORMAL_RUN)
    with pytest.raises(ChainError) as excinfo:
        chain.execute(ex, tmp_path)
    err = excinfo.value
    assert err.kind is ErrorKind.NONZERO_EXIT
    assert err.details["exit_code"] == 4
    assert "bad input" in err.details["stderr"]
    assert err.details["dir"] == tmp_path


def test_real_bad_directory_error(tmp_path):
    op = SubProcOperation(Executable(PYTHON)).push_arg("-c").push_arg("pass").set_dir("nowhere")
    ex, _out = quiet(ExecMode.NORMAL_RUN)
    with pytest.raises(ChainError) as excinfo:
        op.execute(ex, tmp_path)
    assert excinfo.value.kind is ErrorKind.BAD_DIRECTORY
    assert excinfo.value.details["dir"] == tmp_path / "nowhere"
