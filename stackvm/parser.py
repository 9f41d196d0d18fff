from stackvm.ast_nodes import Assign, Binary, Block, Continue, If, Literal, Program, Return, Stop, Var, While
from stackvm.errors import CompileError

COMPARISON_TOKENS = ("EQEQ", "NOTEQ", "LT", "LTE", "GT", "GTE")


class Parser:
    def __init__(self, lexer):
        self.lexer = lexer
        self.current_token = self.lexer.get_next_token()
        self.next_token = self.lexer.get_next_token()
        self.prev_type = None
        self.loop_depth = 0

    # move to next token, but only if it matches what we expect
    def eat(self, token_type):
        if self.current_token.type == token_type:
            self.prev_type = token_type
            self.current_token = self.next_token
            self.next_token = self.lexer.get_next_token()
        else:
            tok = self.current_token
            raise CompileError(f"Expected {token_type}, got {tok.type}", tok.line, tok.column)

    def error_here(self, message):
        tok = self.current_token
        raise CompileError(message, tok.line, tok.column)

    # ignore extra NEWLINEs so formatting can be flexible
    def skip_newlines(self):
        while self.current_token.type == "NEWLINE":
            self.eat("NEWLINE")

    # an if statement may already have consumed its trailing newlines
    def end_statement(self):
        if self.prev_type == "NEWLINE":
            return
        if self.current_token.type not in ("NEWLINE", "RBRACE", "EOF"):
            self.error_here(f"Unexpected {self.current_token.type} after statement")

    # ---------- TOP LEVEL ----------
    def parse(self):
        statements = []
        self.skip_newlines()

        while self.current_token.type != "EOF":
            statements.append(self.statement())
            self.end_statement()
            self.skip_newlines()

        return Program(statements)

    def parse_expression(self):
        # a whole input that is a single expression (used by the REPL)
        self.skip_newlines()
        node = self.expr()
        self.skip_newlines()
        if self.current_token.type != "EOF":
            self.error_here("Expected end of input after expression")
        return node

    # ---------- STATEMENTS ----------
    def statement(self):
        tok = self.current_token

        if tok.type == "IF":
            return self.if_statement()
        if tok.type == "ELIF":
            self.error_here("elif used without a preceding if")
        if tok.type == "ELSE":
            self.error_here("else used without a preceding if")
        if tok.type == "WHILE":
            return self.while_statement()
        if tok.type == "RETURN":
            return self.return_statement()

        if tok.type == "STOP":
            if self.loop_depth == 0:
                self.error_here("break used outside of a loop")
            self.eat("STOP")
            node = Stop()
            node.line = tok.line
            return node

        if tok.type == "CONTINUE":
            if self.loop_depth == 0:
                self.error_here("continue used outside of a loop")
            self.eat("CONTINUE")
            node = Continue()
            node.line = tok.line
            return node

        if tok.type == "IDENT" and self.next_token.type == "ASSIGN":
            self.eat("IDENT")
            self.eat("ASSIGN")
            node = Assign(tok.value, self.expr())
            node.line = tok.line
            return node

        raise CompileError(f"Unexpected token in statement: {tok.type}", tok.line, tok.column)

    def if_statement(self):
        # Grammar:
        #   IF expr block (ELIF expr block)* (ELSE block)?
        # Elif chains are represented as nested If nodes in else_block.
        tok = self.current_token
        self.eat("IF")
        condition = self.expr()
        then_block = self.block()

        root = If(condition, then_block, None)
        root.line = tok.line
        current = root

        # elif/else may sit on a later line, even after blank lines
        self.skip_newlines()
        while self.current_token.type == "ELIF":
            elif_tok = self.current_token
            self.eat("ELIF")
            elif_cond = self.expr()
            elif_block = self.block()

            nested = If(elif_cond, elif_block, None)
            nested.line = elif_tok.line
            current.else_block = nested
            current = nested
            self.skip_newlines()

        if self.current_token.type == "ELSE":
            self.eat("ELSE")
            current.else_block = self.block()

        return root

    def while_statement(self):
        tok = self.current_token
        self.eat("WHILE")
        condition = self.expr()
        self.loop_depth += 1
        body = self.block()
        self.loop_depth -= 1
        node = While(condition, body)
        node.line = tok.line
        return node

    def return_statement(self):
        tok = self.current_token
        self.eat("RETURN")
        node = Return(self.expr())
        node.line = tok.line
        return node

    def block(self):
        self.eat("LBRACE")
        self.skip_newlines()

        statements = []
        while self.current_token.type != "RBRACE":
            if self.current_token.type == "EOF":
                self.error_here("Unclosed block, expected RBRACE")
            statements.append(self.statement())
            self.end_statement()
            self.skip_newlines()

        self.eat("RBRACE")
        return Block(statements)

    # ---------- EXPRESSIONS ----------
    # expr -> term (comparison term)?
    def expr(self):
        node = self.term()

        if self.current_token.type in COMPARISON_TOKENS:
            op_token = self.current_token
            self.eat(op_token.type)
            right = self.term()
            node = Binary(node, self.op_token_to_text(op_token.type), right)
            node.line = op_token.line

            if self.current_token.type in COMPARISON_TOKENS:
                self.error_here("Comparisons cannot be chained")

        return node

    # term -> factor ((+|-) factor)*
    def term(self):
        node = self.factor()

        while self.current_token.type in ("PLUS", "MINUS"):
            op_token = self.current_token
            self.eat(op_token.type)
            right = self.factor()
            node = Binary(node, self.op_token_to_text(op_token.type), right)
            node.line = op_token.line

        return node

    # factor -> unary ((*|/) unary)*
    def factor(self):
        node = self.unary()

        while self.current_token.type in ("STAR", "SLASH"):
            op_token = self.current_token
            self.eat(op_token.type)
            right = self.unary()
            node = Binary(node, self.op_token_to_text(op_token.type), right)
            node.line = op_token.line

        return node

    # unary -> (- unary) | primary
    def unary(self):
        if self.current_token.type == "MINUS":
            tok = self.current_token
            self.eat("MINUS")
            if self.current_token.type == "NUMBER":
                # fold so the most negative 64-bit literal stays representable
                num = self.current_token
                self.eat("NUMBER")
                node = Literal(-num.value)
            else:
                # represent -x as (0 - x)
                node = Binary(Literal(0), "-", self.unary())
            node.line = tok.line
            return node
        return self.primary()

    # primary -> NUMBER | IDENT | (expr)
    def primary(self):
        tok = self.current_token

        if tok.type == "NUMBER":
            self.eat("NUMBER")
            node = Literal(tok.value)
            node.line = tok.line
            return node

        if tok.type == "IDENT":
            self.eat("IDENT")
            node = Var(tok.value)
            node.line = tok.line
            return node

        if tok.type == "LPAREN":
            self.eat("LPAREN")
            node = self.expr()
            self.eat("RPAREN")
            return node

        raise CompileError(f"Unexpected token in expression: {tok.type}", tok.line, tok.column)

    # ---------- HELPERS ----------
    def op_token_to_text(self, op_type):
        mapping = {
            "PLUS": "+",
            "MINUS": "-",
            "STAR": "*",
            "SLASH": "/",
            "EQEQ": "==",
            "NOTEQ": "!=",
            "LT": "<",
            "LTE": "<=",
            "GT": ">",
            "GTE": ">=",
        }
        return mapping[op_type]
