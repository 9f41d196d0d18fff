from stackvm.assembler import assemble, disassemble, format_listing
from stackvm.bytecode import Instruction, Program, ProgramBuilder
from stackvm.compiler import Compiler, compile_source
from stackvm.errors import (
    AssembleError,
    CompileError,
    InterpreterError,
    RunResult,
    StackVMError,
    StepLimitExceeded,
    VMRuntimeError,
)
from stackvm.vm import VM, run

__version__ = "0.1.0"
