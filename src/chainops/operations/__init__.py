from .chained import Activation, ChainedOpRef, ChainedOps
from .function import FunctionOperation
from .generic import OpInterface, execute_here
from .subproc import SubProcOperation

__all__ = [
    "Activation",
    "ChainedOpRef",
    "ChainedOps",
    "FunctionOperation",
    "OpInterface",
    "SubProcOperation",
    "execute_here",
]
