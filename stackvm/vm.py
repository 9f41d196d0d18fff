import operator
import sys

from stackvm.bytecode import INT_MIN, Program
from stackvm.errors import InterpreterError, RunResult, StepLimitExceeded


def wrap_int(value: int) -> int:
    # two's complement wrap into the signed 64-bit range
    return (value - INT_MIN) % (2 ** 64) + INT_MIN


def trunc_div(lhs: int, rhs: int) -> int:
    quotient = abs(lhs) // abs(rhs)
    if (lhs < 0) != (rhs < 0):
        quotient = -quotient
    return wrap_int(quotient)


ARITHMETIC = {
    "ADD": operator.add,
    "SUB": operator.sub,
    "MUL": operator.mul,
}

COMPARISONS = {
    "CMP_EQ": operator.eq,
    "CMP_NE": operator.ne,
    "CMP_GT": operator.gt,
    "CMP_LT": operator.lt,
    "CMP_GE": operator.ge,
    "CMP_LE": operator.le,
}


class VM:
    """Fetch-decode-execute loop over a Program.

    Every call to run() starts from an empty stack, an empty variable table
    and ip=0, so a VM (and its Program) can be run any number of times.
    Runtime faults come back inside the RunResult; they are never raised.
    """

    def __init__(self, program, max_steps: int | None = None, trace: bool = False, trace_stream=None):
        if not isinstance(program, Program):
            program = Program(program)
        self.program = program
        self.instructions = program.instructions

        self.max_steps = max_steps  # set to an int to guard against infinite loops
        self.trace_enabled = trace
        self.trace_stream = trace_stream

        self.reset()

    def reset(self):
        self.ip = 0          # instruction pointer (where we are)
        self.stack = []      # operand stack
        self.vars = {}       # variable table
        self.halted = False
        self.steps = 0

    def _pop_operands(self):
        # rhs is on top; both pops must succeed
        if not self.stack:
            return None
        rhs = self.stack.pop()
        if not self.stack:
            return None
        lhs = self.stack.pop()
        return lhs, rhs

    def _trace(self, opcode, arg):
        text = opcode if arg is None else f"{opcode} {arg}"
        stream = self.trace_stream or sys.stdout
        print(f"TRACE ip={self.ip:04d} {text} stack={self.stack!r}", file=stream)

    def step(self) -> InterpreterError | None:
        """Execute one instruction. Returns the fault, if any.

        The +1 advance happens here, once, for every opcode except RETURN
        and faulting instructions. A jump to N therefore resumes at N + 1.
        """
        if self.ip < 0 or self.ip >= len(self.instructions):
            return InterpreterError.BAD_INSTRUCTION_OFFSET

        opcode, arg = self.instructions[self.ip]

        if self.trace_enabled:
            self._trace(opcode, arg)

        if opcode == "RETURN":
            self.halted = True
            return None

        fault = self.execute(opcode, arg)
        if fault is not None:
            return fault

        self.ip += 1
        return None

    def execute(self, opcode, arg) -> InterpreterError | None:
        if opcode == "LOAD":
            self.stack.append(arg)
            return None

        if opcode == "WRITE":
            if not self.stack:
                return InterpreterError.STACK_EMPTY
            self.vars[arg] = self.stack.pop()
            return None

        if opcode == "READ":
            if arg not in self.vars:
                return InterpreterError.UNDEFINED_BEHAVIOR
            self.stack.append(self.vars[arg])
            return None

        if opcode in ARITHMETIC:
            operands = self._pop_operands()
            if operands is None:
                return InterpreterError.STACK_EMPTY
            lhs, rhs = operands
            self.stack.append(wrap_int(ARITHMETIC[opcode](lhs, rhs)))
            return None

        if opcode == "DIV":
            operands = self._pop_operands()
            if operands is None:
                return InterpreterError.STACK_EMPTY
            lhs, rhs = operands
            if rhs == 0:
                return InterpreterError.DIVIDE_BY_ZERO
            self.stack.append(trunc_div(lhs, rhs))
            return None

        if opcode in COMPARISONS:
            operands = self._pop_operands()
            if operands is None:
                return InterpreterError.STACK_EMPTY
            lhs, rhs = operands
            self.stack.append(1 if COMPARISONS[opcode](lhs, rhs) else 0)
            return None

        if opcode == "JUMP":
            if arg >= len(self.instructions):
                return InterpreterError.BAD_INSTRUCTION_OFFSET
            self.ip = arg
            return None

        if opcode == "JUMP_IF":
            if not self.stack:
                return InterpreterError.STACK_EMPTY
            # no bounds check: a bad target faults on the next fetch
            if self.stack.pop() == 0:
                self.ip = arg
            return None

        raise ValueError(f"Unknown opcode: {opcode}")

    def _failure(self, error: InterpreterError) -> RunResult:
        return RunResult.failure(error, ip=self.ip, location=self.program.debug_at(self.ip))

    def run(self) -> RunResult:
        self.reset()
        while not self.halted:
            if self.max_steps is not None:
                self.steps += 1
                if self.steps > self.max_steps:
                    raise StepLimitExceeded(self.max_steps, self.ip)

            fault = self.step()
            if fault is not None:
                return self._failure(fault)

        if not self.stack:
            return self._failure(InterpreterError.STACK_EMPTY)
        return RunResult.success(self.stack.pop(), ip=self.ip)


def run(program, **options) -> RunResult:
    return VM(program, **options).run()
