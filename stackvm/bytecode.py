INT_MIN = -(2 ** 63)
INT_MAX = 2 ** 63 - 1

# opcode -> operand kind ("int", "name", "offset" or None)
OPCODES = {
    "LOAD": "int",
    "READ": "name",
    "WRITE": "name",
    "JUMP": "offset",
    "JUMP_IF": "offset",
    "CMP_EQ": None,
    "CMP_NE": None,
    "CMP_GT": None,
    "CMP_LT": None,
    "CMP_GE": None,
    "CMP_LE": None,
    "ADD": None,
    "SUB": None,
    "MUL": None,
    "DIV": None,
    "RETURN": None,
}

JUMP_OPCODES = ("JUMP", "JUMP_IF")


class Instruction:
    __slots__ = ("opcode", "arg")

    def __init__(self, opcode, arg=None):
        if opcode not in OPCODES:
            raise ValueError(f"Unknown opcode: {opcode!r}")

        kind = OPCODES[opcode]
        if kind is None:
            if arg is not None:
                raise ValueError(f"{opcode} takes no operand, got {arg!r}")
        elif kind == "name":
            if not isinstance(arg, str):
                raise TypeError(f"{opcode} operand must be a variable name, got {arg!r}")
            if not arg:
                raise ValueError(f"{opcode} operand must be a non-empty name")
        else:
            # bool is an int subclass; reject it explicitly
            if not isinstance(arg, int) or isinstance(arg, bool):
                raise TypeError(f"{opcode} operand must be an integer, got {arg!r}")
            if kind == "int" and not INT_MIN <= arg <= INT_MAX:
                raise ValueError(f"{opcode} operand out of 64-bit range: {arg}")
            if kind == "offset" and arg < 0:
                raise ValueError(f"{opcode} offset must be non-negative, got {arg}")

        self.opcode = opcode
        self.arg = arg

    @classmethod
    def coerce(cls, value):
        if isinstance(value, Instruction):
            return value
        if isinstance(value, tuple) and len(value) in (1, 2):
            return cls(*value)
        raise TypeError(f"Expected an Instruction or (opcode, arg) tuple, got {value!r}")

    def __iter__(self):
        # allows `opcode, arg = ins`
        yield self.opcode
        yield self.arg

    # tuples never compare equal; use Instruction.coerce() or unpack first
    def __eq__(self, other):
        if not isinstance(other, Instruction):
            return NotImplemented
        return self.opcode == other.opcode and self.arg == other.arg

    def __hash__(self):
        return hash((self.opcode, self.arg))

    def __str__(self):
        if self.arg is None:
            return self.opcode
        return f"{self.opcode} {self.arg}"

    def __repr__(self):
        if self.arg is None:
            return f"Instruction({self.opcode!r})"
        return f"Instruction({self.opcode!r}, {self.arg!r})"


class Program:
    """Immutable instruction sequence. Indices are jump addresses.

    Nothing about control flow is checked here: bad jump targets and
    unreachable code only matter once the VM reaches them.
    """

    __slots__ = ("_instructions", "_debug")

    def __init__(self, instructions, debug=None):
        self._instructions = tuple(Instruction.coerce(i) for i in instructions)
        if debug is None:
            debug = [None] * len(self._instructions)
        debug = tuple(debug)
        if len(debug) != len(self._instructions):
            raise ValueError("debug info must align with instructions")
        self._debug = debug

    @property
    def instructions(self):
        return self._instructions

    def debug_at(self, ip: int):
        if ip < 0 or ip >= len(self._debug):
            return None
        return self._debug[ip]

    def __len__(self):
        return len(self._instructions)

    def __getitem__(self, index):
        return self._instructions[index]

    def __iter__(self):
        return iter(self._instructions)

    def __eq__(self, other):
        if not isinstance(other, Program):
            return NotImplemented
        return self._instructions == other._instructions

    def __hash__(self):
        return hash(self._instructions)

    def __repr__(self):
        return f"Program({list(self._instructions)!r})"


class ProgramBuilder:
    def __init__(self):
        self.instructions = []   # list of (OPCODE, arg)
        self.debug = []          # list of debug dicts (e.g. {"file": str, "line": int}) aligned with instructions

    def emit(self, opcode, arg=None, debug=None):
        # returns instruction index (useful for jumps)
        self.instructions.append((opcode, arg))
        self.debug.append(debug)
        return len(self.instructions) - 1

    def patch(self, index, arg):
        opcode, _ = self.instructions[index]
        self.instructions[index] = (opcode, arg)

    def position(self) -> int:
        return len(self.instructions)

    def build(self) -> Program:
        return Program(self.instructions, debug=self.debug)
