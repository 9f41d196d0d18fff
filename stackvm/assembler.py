"""Text form of a Program.

One instruction per line::

    LOAD 4
    JUMP 2        # resumes at address 3
    LOAD 5
    LOAD 7
    ADD
    RETURN

Mnemonics are the opcode names and are case-insensitive. ``#`` and ``;``
start a comment. Jump operands are raw addresses: the VM resumes at
``operand + 1``.
"""

import re

from stackvm.bytecode import INT_MAX, INT_MIN, JUMP_OPCODES, OPCODES, Program, ProgramBuilder
from stackvm.errors import AssembleError

TOKEN_RE = re.compile(r"\S+")
NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*\Z")
INT_RE = re.compile(r"[+-]?[0-9]+\Z")
OFFSET_RE = re.compile(r"[0-9]+\Z")

ALIASES = {
    "JUMPIF": "JUMP_IF",
    "COMPAREEQ": "CMP_EQ",
    "COMPARENE": "CMP_NE",
    "COMPAREGT": "CMP_GT",
    "COMPARELT": "CMP_LT",
    "COMPAREGTE": "CMP_GE",
    "COMPARELTE": "CMP_LE",
}


def _strip_comment(line: str) -> str:
    for marker in ("#", ";"):
        i = line.find(marker)
        if i != -1:
            line = line[:i]
    return line


def _parse_operand(opcode, kind, text, line, column):
    if kind == "name":
        if not NAME_RE.match(text):
            raise AssembleError(f"{opcode} expects a variable name, got {text!r}", line, column)
        return text

    if kind == "offset":
        if not OFFSET_RE.match(text):
            raise AssembleError(f"{opcode} expects a non-negative offset, got {text!r}", line, column)
        return int(text)

    if not INT_RE.match(text):
        raise AssembleError(f"{opcode} expects an integer, got {text!r}", line, column)
    value = int(text)
    if value < INT_MIN or value > INT_MAX:
        raise AssembleError(f"Integer out of 64-bit range: {text}", line, column)
    return value


def assemble(text: str, source_path: str | None = None) -> Program:
    builder = ProgramBuilder()

    for line_no, raw in enumerate(text.splitlines(), start=1):
        tokens = list(TOKEN_RE.finditer(_strip_comment(raw)))
        if not tokens:
            continue

        head = tokens[0]
        mnemonic = head.group().upper()
        opcode = ALIASES.get(mnemonic, mnemonic)
        if opcode not in OPCODES:
            raise AssembleError(f"Unknown mnemonic: {head.group()}", line_no, head.start() + 1)

        kind = OPCODES[opcode]
        operands = tokens[1:]
        arg = None
        if kind is None:
            if operands:
                raise AssembleError(f"{opcode} takes no operand", line_no, operands[0].start() + 1)
        else:
            if not operands:
                raise AssembleError(f"{opcode} expects an operand", line_no, head.end() + 1)
            if len(operands) > 1:
                raise AssembleError(f"{opcode} takes a single operand", line_no, operands[1].start() + 1)
            tok = operands[0]
            arg = _parse_operand(opcode, kind, tok.group(), line_no, tok.start() + 1)

        debug = {"line": line_no}
        if source_path is not None:
            debug["file"] = source_path
        builder.emit(opcode, arg, debug=debug)

    return builder.build()


def disassemble(program: Program) -> str:
    return "".join(f"{ins}\n" for ins in program)


def format_listing(program: Program) -> str:
    lines = []
    for i, ins in enumerate(program):
        text = f"{i:04d}  {ins}"
        if ins.opcode in JUMP_OPCODES:
            text = f"{text:<24}; resumes at {ins.arg + 1:04d}"
        dbg = program.debug_at(i)
        if dbg and dbg.get("line") is not None:
            text = f"{text:<44}# line {dbg['line']}"
        lines.append(text.rstrip())
    return "\n".join(lines)
