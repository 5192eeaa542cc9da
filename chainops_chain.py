# chainops_chain.py
# Build myapp from src/foo.c and src/bar.c, run its self-test and check the result.
#   python chainops_chain.py    (dry run: prints the commands without running them)
from __future__ import annotations

from chainops import ChainedOps, Executable, Executor, ExeFileSpec, FileArg, SubProcOperation

C_COMPILER = (
    Executable("cc", ExeFileSpec.append(), ExeFileSpec.option("-o"))
    .push_arg("-c")
    .push_arg("-O0")
    .push_arg("-g")
    .push_arg("-X").push_arg("c")
)

LINKER = Executable("cc", ExeFileSpec.append(), ExeFileSpec.option("-o")).push_arg("--print-map")


def chain() -> ChainedOps:
    build = ChainedOps("build myapp")

    # An operation can be adjusted after it is added to the chain...
    compile_foo = build.push_op(SubProcOperation(C_COMPILER))
    compile_foo.set_dir("src/") \
        .set_input_file(FileArg.loc("foo.c")) \
        .set_output_file(FileArg.loc("../build/foo.o")) \
        .push_arg("-DDEBUG=1")

    # ...or fully configured before it is added.
    build.push_op(
        SubProcOperation(C_COMPILER)
        .set_dir("src/")
        .set_input_file(FileArg.loc("bar.c"))
        .set_output_file(FileArg.loc("../build/bar.o"))
    )
    build.push_op(
        SubProcOperation(LINKER)
        .set_dir("build/")
        .set_input_file(FileArg.loc("foo.o"))
        .add_input_file(FileArg.loc("bar.o"))
        .set_output_file(FileArg.loc("myapp.exe"))
    )
    build.push_op(
        SubProcOperation(Executable("bash", ExeFileSpec.append(), ExeFileSpec.none()))
        .set_dir("build/")
        .set_input_file(FileArg.loc("myapp.exe"))
        .set_output_file(FileArg.temp("test_out"))
    )
    build.push_op(
        SubProcOperation(Executable("grep", ExeFileSpec.append(), ExeFileSpec.none()))
        .push_arg("Passed")
        .set_input_file(FileArg.glob_in("build/", "*.test_out"))
    )
    return build


if __name__ == "__main__":
    chain().execute(Executor.dry_run(), "/home/user/myapp-src")
