from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from chainops.envspec import EnvSpec
from chainops.errors import ChainError, ErrorKind
from chainops.executable import Executable, ExeFileSpec
from chainops.execution import NonzeroExit, SpawnFailed
from chainops.files import FileArg, SingleFile, StaticFile
from chainops.operations import ChainedOps, SubProcOperation, execute_here
from chainops.testing import CallCollector

CC = Executable("cc", ExeFileSpec.append(), ExeFileSpec.option("-o")).push_arg("-c")


def test_executable_is_a_value():
    base = Executable("cc")
    with_arg = base.push_arg("-g")
    assert base.base_args == ()
    assert with_arg.base_args == ("-g",)
    assert with_arg.set_exe("clang").name == "clang"
    assert with_arg.set_exe("clang").base_args == ("-g",)
    assert repr(ExeFileSpec.option("-o")) == "option(-o)"
    assert repr(ExeFileSpec.none()) == "<none>"


def test_output_option_goes_before_appended_inputs():
    op = (
        SubProcOperation(CC)
        .push_arg("-g")
        .set_input_file(FileArg.loc("foo.c"))
        .set_output_file(FileArg.loc("foo.o"))
    )
    assert op.emit_output_file_first()
    args, _files = op.finalize_args(CallCollector())
    assert args == ["-c", "-g", "-o", "foo.o", "foo.c"]


def test_option_with_equals_is_one_argument():
    exe = Executable("cc", ExeFileSpec.append(), ExeFileSpec.option("-file="))
    op = SubProcOperation(exe).set_input_file(FileArg.loc("in.c")).set_output_file(FileArg.loc("out.o"))
    args, _files = op.finalize_args(CallCollector())
    assert args == ["-file=out.o", "in.c"]


def test_option_inputs_are_comma_joined_and_come_first():
    exe = Executable("tool", ExeFileSpec.option("-i"), ExeFileSpec.option("--out="))
    op = (
        SubProcOperation(exe)
        .set_input_file(FileArg.loc("a"))
        .add_input_file(FileArg.loc("b"))
        .set_output_file(FileArg.loc("o"))
    )
    assert not op.emit_output_file_first()
    args, _files = op.finalize_args(CallCollector())
    assert args == ["-i", "a,b", "--out=o"]


def test_append_input_then_output():
    exe = Executable("cp", ExeFileSpec.append(), ExeFileSpec.append())
    op = SubProcOperation(exe).set_input_file(FileArg.loc("src")).set_output_file(FileArg.loc("dst"))
    args, _files = op.finalize_args(CallCollector())
    assert args == ["src", "dst"]


def test_glob_inputs_expand_in_order():
    coll = CallCollector(glob_results={"src/*.c": [Path("src/a.c"), Path("src/b.c")]})
    exe = Executable("wc", ExeFileSpec.append(), ExeFileSpec.none())
    op = SubProcOperation(exe).push_arg("-l").set_input_file(FileArg.glob_in("src", "*.c"))
    op.execute(coll)
    assert coll.execs[0].args == ["-l", "src/a.c", "src/b.c"]


def test_unused_output_creates_no_temp_file():
    coll = CallCollector()
    exe = Executable("bash", ExeFileSpec.append(), ExeFileSpec.none())
    op = SubProcOperation(exe).set_input_file(FileArg.loc("run.sh")).set_output_file(FileArg.temp("out"))
    result = op.execute(coll)
    assert len(result) == 0
    assert coll.tempfiles == []
    assert coll.execs[0].args == ["run.sh"]


def test_missing_input_reports_context():
    op = SubProcOperation(CC).set_output_file(FileArg.loc("foo.o"))
    op.set_input_file(FileArg.tbd())
    with pytest.raises(ChainError) as excinfo:
        op.execute(CallCollector())
    err = excinfo.value
    assert err.kind is ErrorKind.MISSING_FILE
    assert "setting input file for cc" in err.context
    assert "while setting input file for cc" in str(err)


def test_missing_output_reports_context():
    op = SubProcOperation(CC).set_input_file(FileArg.loc("foo.c"))
    with pytest.raises(ChainError) as excinfo:
        op.execute(CallCollector())
    assert excinfo.value.kind is ErrorKind.MISSING_FILE
    assert excinfo.value.context == ["setting output file for cc"]


def test_temp_file_creation_failure_is_executing_error(tmp_path, monkeypatch):
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path / "missing"))
    chain = ChainedOps("one stage")
    chain.push_op(SubProcOperation(CC).set_input_file(FileArg.loc("foo.c")).set_output_file(FileArg.temp(".o")))
    coll = CallCollector()
    with pytest.raises(ChainError) as excinfo:
        chain.execute(coll)
    err = excinfo.value
    assert err.kind is ErrorKind.EXECUTING
    assert err.tool == "file setup"
    assert err.context == ["setting output file for cc"]
    assert isinstance(err.__cause__, FileNotFoundError)
    assert coll.execs == []


class UnreadableGlobs(CallCollector):
    def glob_search(self, globpat):
        raise PermissionError(13, "Permission denied", globpat)


def test_glob_failure_releases_earlier_inputs():
    op = (
        SubProcOperation(Executable("cat", ExeFileSpec.append(), ExeFileSpec.none()))
        .set_input_file(FileArg.temp(".a"))
        .add_input_file(FileArg.glob_in("locked", "*.a"))
    )
    coll = UnreadableGlobs()
    with pytest.raises(ChainError) as excinfo:
        op.execute(coll)
    err = excinfo.value
    assert err.kind is ErrorKind.EXECUTING
    assert err.context == ["setting input file for cat"]
    assert isinstance(err.__cause__, PermissionError)
    assert len(coll.tempfiles) == 1
    assert not coll.tempfiles[0].exists()


def test_via_call_builds_its_own_arguments():
    seen = {}

    def add_input(args, directory, actual):
        seen["dir"] = directory
        args.extend(["--in", str(actual.to_path())])

    exe = Executable("tool", ExeFileSpec.via_call(add_input), ExeFileSpec.none())
    op = SubProcOperation(exe).push_arg("-v").set_input_file(FileArg.loc("x.dat"))
    coll = CallCollector()
    op.execute(coll, "/work")
    assert coll.execs[0].args == ["-v", "--in", "x.dat"]
    assert seen["dir"] == Path("/work")


def test_via_call_failure_is_executing_error():
    def broken(args, directory, actual):
        raise ValueError("cannot place file")

    exe = Executable("tool", ExeFileSpec.via_call(broken), ExeFileSpec.none())
    op = SubProcOperation(exe).set_input_file(FileArg.loc("x.dat"))
    coll = CallCollector()
    with pytest.raises(ChainError) as excinfo:
        op.execute(coll)
    assert excinfo.value.kind is ErrorKind.EXECUTING
    assert isinstance(excinfo.value.__cause__, ValueError)
    assert coll.execs == []


def test_execute_records_command_and_returns_output():
    op = SubProcOperation(CC).set_input_file(FileArg.loc("foo.c")).set_output_file(FileArg.loc("foo.o"))
    coll = CallCollector()
    result = op.execute(coll, "/work")
    assert result == SingleFile(StaticFile(Path("foo.o")))
    rec = coll.execs[0]
    assert rec.name == "cc"
    assert rec.exe == Path("cc")
    assert rec.dir == Path("/work")
    assert rec.env == EnvSpec.inherit()


def test_directory_resolution():
    coll = CallCollector()
    op = SubProcOperation(Executable("ls")).set_dir("src")
    op.execute(coll, "/work")
    op.execute(coll)
    op.set_dir("/abs")
    op.execute(coll, "/work")
    execute_here(SubProcOperation(Executable("ls")), coll)
    assert [r.dir for r in coll.execs] == [Path("/work/src"), Path("src"), Path("/abs"), None]


def test_nonzero_exit_becomes_error():
    coll = CallCollector(fail_on={"cc": NonzeroExit(2, "foo.c:1: error")})
    op = SubProcOperation(CC).set_input_file(FileArg.loc("foo.c")).set_output_file(FileArg.temp(".o"))
    with pytest.raises(ChainError) as excinfo:
        op.execute(coll, "/work")
    err = excinfo.value
    assert err.kind is ErrorKind.NONZERO_EXIT
    assert err.tool == "cc"
    assert err.details["exit_code"] == 2
    assert err.details["stderr"] == "foo.c:1: error"
    assert err.details["dir"] == Path("/work")
    # The temp output is removed with the failure.
    assert len(coll.tempfiles) == 1
    assert not coll.tempfiles[0].exists()


def test_spawn_failure_carries_hint():
    coll = CallCollector(fail_on={"cc": SpawnFailed(FileNotFoundError(2, "No such file", "cc"))})
    op = SubProcOperation(CC).set_input_file(FileArg.loc("foo.c")).set_output_file(FileArg.loc("foo.o"))
    with pytest.raises(ChainError) as excinfo:
        op.execute(coll)
    assert excinfo.value.kind is ErrorKind.SPAWN_SETUP_FAILED
    assert "hint" in excinfo.value.details
    assert excinfo.value.details["args"] == ["-c", "-o", "foo.o", "foo.c"]


def test_temp_input_released_after_execute():
    coll = CallCollector()
    op = SubProcOperation(Executable("cat")).set_input_file(FileArg.temp(".txt"))
    op.execute(coll)
    assert len(coll.tempfiles) == 1
    assert str(coll.tempfiles[0]) in coll.execs[0].args
    assert not coll.tempfiles[0].exists()


def test_env_settings_reach_executor():
    op = (
        SubProcOperation(Executable("make"))
        .set_env("CC", "clang")
        .prepend_env("PATH", "/opt/bin", ":")
        .unset_env("MAKEFLAGS")
    )
    coll = CallCollector()
    op.execute(coll)
    expected = (
        EnvSpec.inherit()
        .add("CC", "clang")
        .prepend("PATH", "/opt/bin", ":")
        .rmv("MAKEFLAGS")
    )
    assert op.env == expected
    assert coll.execs[0].env == expected
    assert op.clear_env().env == EnvSpec.blank()


def test_set_executable_changes_label():
    op = SubProcOperation(CC).push_arg("-g")
    op.set_executable("/usr/bin/clang")
    assert op.label() == "/usr/bin/clang"
    assert op.exec.base_args == ("-c",)
    op.set_label("compile")
    assert op.label() == "compile"


def test_clone_is_independent():
    op = SubProcOperation(CC).push_arg("-g").set_input_file(FileArg.loc("a.c"))
    other = op.clone()
    other.push_arg("-O2").add_input_file(FileArg.loc("b.c")).set_env("X", "1")
    assert op.args == ["-g"]
    assert op.files.inp_filenames == [FileArg.loc("a.c")]
    assert op.env == EnvSpec.inherit()
