from stackvm.ast_nodes import Assign, Binary, Block, Continue, If, Literal, Program, Return, Stop, Var, While
from stackvm.bytecode import INT_MAX, INT_MIN, ProgramBuilder
from stackvm.errors import CompileError
from stackvm.lexer import Lexer
from stackvm.parser import Parser


class Compiler:
    """Compiles a Tally AST into a bytecode Program.

    The VM advances ip by one after every jump, so a jump meant to resume
    at address N is emitted with operand N - 1 (see jump_to / patch_to).
    """

    def __init__(self, source_path: str | None = None):
        self.bc = ProgramBuilder()
        self.loop_stack = []
        self.source_path = source_path

    def _debug_for(self, node):
        line = getattr(node, "line", None)
        if self.source_path is None and line is None:
            return None
        dbg = {}
        if self.source_path is not None:
            dbg["file"] = self.source_path
        if line is not None:
            dbg["line"] = line
        return dbg

    def emit(self, opcode, arg=None, node=None):
        return self.bc.emit(opcode, arg, debug=self._debug_for(node))

    def jump_to(self, opcode, target, node=None):
        return self.emit(opcode, target - 1, node)

    def patch_to(self, index, target):
        self.bc.patch(index, target - 1)

    def compile(self, node):
        if not isinstance(node, Program):
            raise CompileError("Compiler expects a Program node at the top")

        # JUMP 0 resumes at 1, so no real jump target is ever address 0
        # (its operand would have to be -1).
        self.emit("JUMP", 0, node)

        for stmt in node.statements:
            self.compile_stmt(stmt)

        # falling off the end returns 0
        self.emit("LOAD", 0, node)
        self.emit("RETURN", node=node)
        return self.bc.build()

    # -------- statements --------
    def compile_stmt(self, node):
        if isinstance(node, Assign):
            self.compile_expr(node.value)
            self.emit("WRITE", node.name, node)
            return

        if isinstance(node, Return):
            self.compile_expr(node.expr)
            self.emit("RETURN", node=node)
            return

        if isinstance(node, If):
            self.compile_if(node)
            return

        if isinstance(node, While):
            self.compile_while(node)
            return

        if isinstance(node, Stop):
            self.compile_stop(node)
            return

        if isinstance(node, Continue):
            self.compile_continue(node)
            return

        raise CompileError(f"Unknown statement node: {node.__class__.__name__}", getattr(node, "line", None))

    def compile_block(self, block):
        for stmt in block.statements:
            self.compile_stmt(stmt)

    def compile_if(self, node):
        # 1) condition leaves 0/nonzero on the stack
        self.compile_expr(node.condition)

        # 2) jump to else if zero (patched later)
        jmp_false_i = self.emit("JUMP_IF", None, node)

        # 3) then block, then skip the else part
        self.compile_block(node.then_block)
        if node.else_block is None:
            self.patch_to(jmp_false_i, self.bc.position())
            return
        jmp_end_i = self.emit("JUMP", None, node)

        # 4) else block: a Block (normal else) or a nested If (elif chain)
        self.patch_to(jmp_false_i, self.bc.position())
        if isinstance(node.else_block, Block):
            self.compile_block(node.else_block)
        else:
            self.compile_stmt(node.else_block)

        self.patch_to(jmp_end_i, self.bc.position())

    def compile_while(self, node):
        loop_start = self.bc.position()

        frame = {
            "start": loop_start,
            "break_jumps": [],
        }
        self.loop_stack.append(frame)

        self.compile_expr(node.condition)
        jmp_end_i = self.emit("JUMP_IF", None, node)

        self.compile_block(node.body)
        self.jump_to("JUMP", loop_start, node)

        loop_end = self.bc.position()
        self.patch_to(jmp_end_i, loop_end)
        for jmp_i in frame["break_jumps"]:
            self.patch_to(jmp_i, loop_end)

        self.loop_stack.pop()

    def compile_stop(self, node):
        if not self.loop_stack:
            raise CompileError("break used outside of a loop", node.line)
        frame = self.loop_stack[-1]
        frame["break_jumps"].append(self.emit("JUMP", None, node))

    def compile_continue(self, node):
        if not self.loop_stack:
            raise CompileError("continue used outside of a loop", node.line)
        self.jump_to("JUMP", self.loop_stack[-1]["start"], node)

    # -------- expressions --------
    def compile_expr(self, node):
        if isinstance(node, Literal):
            if node.value < INT_MIN or node.value > INT_MAX:
                raise CompileError(f"Integer literal out of 64-bit range: {node.value}", node.line)
            self.emit("LOAD", node.value, node)
            return

        if isinstance(node, Var):
            self.emit("READ", node.name, node)
            return

        if isinstance(node, Binary):
            self.compile_expr(node.left)
            self.compile_expr(node.right)
            self.emit(self.binary_op_to_opcode(node.op), node=node)
            return

        raise CompileError(f"Unknown expression node: {node.__class__.__name__}", getattr(node, "line", None))

    def binary_op_to_opcode(self, op):
        mapping = {
            "+": "ADD",
            "-": "SUB",
            "*": "MUL",
            "/": "DIV",
            "==": "CMP_EQ",
            "!=": "CMP_NE",
            "<": "CMP_LT",
            "<=": "CMP_LE",
            ">": "CMP_GT",
            ">=": "CMP_GE",
        }
        if op not in mapping:
            raise CompileError(f"Unknown operator: {op}")
        return mapping[op]


def compile_source(source: str, source_path: str | None = None):
    program = Parser(Lexer(source)).parse()
    return Compiler(source_path=source_path).compile(program)
