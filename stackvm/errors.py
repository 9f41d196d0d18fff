import enum
import os


class InterpreterError(enum.Enum):
    STACK_EMPTY = "stack empty"
    DIVIDE_BY_ZERO = "divide by zero"
    UNDEFINED_BEHAVIOR = "read of unbound variable"
    BAD_INSTRUCTION_OFFSET = "bad instruction offset"


class StackVMError(Exception):
    pass


class CompileError(StackVMError):
    def __init__(self, message: str, line: int | None = None, column: int | None = None):
        self.message = message
        self.line = line
        self.column = column
        if line is not None and column is not None:
            message = f"{message} at line {line}, col {column}"
        elif line is not None:
            message = f"{message} at line {line}"
        super().__init__(message)


class AssembleError(CompileError):
    pass


class StepLimitExceeded(StackVMError):
    def __init__(self, max_steps: int, ip: int):
        super().__init__(f"Step limit exceeded ({max_steps} steps, ip={ip:04d}); possible infinite loop")
        self.max_steps = max_steps
        self.ip = ip


class VMRuntimeError(StackVMError):
    def __init__(self, error: InterpreterError, ip: int | None = None, location=None):
        super().__init__(error.value)
        self.error = error
        self.ip = ip
        self.location = location or {}

    def format(self, indent: str = "") -> str:
        lines = [f"{indent}Runtime error: {self.error.value} ({self.error.name})"]
        if self.ip is not None:
            lines.append(f"{indent}  ip={self.ip:04d}")
        line = self.location.get("line")
        if line is not None:
            file_path = self.location.get("file") or "<unknown>"
            lines.append(f"{indent}  at {os.path.basename(file_path)}:{line}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.format()


class RunResult:
    """Outcome of one run: either ``value`` or ``error`` is set, never both.

    ``ip`` is the address of the faulting instruction (or of the RETURN that
    produced the value).
    """

    def __init__(self, value: int | None = None, error: InterpreterError | None = None, ip: int | None = None, location=None):
        self.value = value
        self.error = error
        self.ip = ip
        self.location = location

    @classmethod
    def success(cls, value: int, ip: int | None = None):
        return cls(value=value, ip=ip)

    @classmethod
    def failure(cls, error: InterpreterError, ip: int | None = None, location=None):
        return cls(error=error, ip=ip, location=location)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> int:
        if self.error is not None:
            raise VMRuntimeError(self.error, ip=self.ip, location=self.location)
        return self.value

    def __eq__(self, other):
        if not isinstance(other, RunResult):
            return NotImplemented
        return self.value == other.value and self.error == other.error

    def __hash__(self):
        return hash((self.value, self.error))

    def __repr__(self):
        if self.error is not None:
            return f"RunResult(error={self.error.name}, ip={self.ip})"
        return f"RunResult(value={self.value})"
