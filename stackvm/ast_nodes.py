class ASTNode:
    # Optional source line (1-based). Parser may set this.
    line: int | None = None


class Program(ASTNode):
    def __init__(self, statements):
        self.statements = statements


class Assign(ASTNode):
    def __init__(self, name, value):
        self.name = name    # variable name
        self.value = value  # expression


class Literal(ASTNode):
    def __init__(self, value):
        self.value = value


class Var(ASTNode):
    def __init__(self, name):
        self.name = name


class Binary(ASTNode):
    def __init__(self, left, op, right):
        self.left = left
        self.op = op
        self.right = right


class Block(ASTNode):
    def __init__(self, statements):
        self.statements = statements


class If(ASTNode):
    def __init__(self, condition, then_block, else_block=None):
        self.condition = condition
        self.then_block = then_block
        self.else_block = else_block  # Block | If (elif chain) | None


class While(ASTNode):
    def __init__(self, condition, body):
        self.condition = condition
        self.body = body


class Stop(ASTNode):
    pass


class Continue(ASTNode):
    pass


class Return(ASTNode):
    def __init__(self, expr):
        self.expr = expr
