from stackvm.errors import CompileError

KEYWORDS = {
    "if": "IF",
    "elif": "ELIF",
    "else": "ELSE",
    "while": "WHILE",
    "return": "RETURN",
    "break": "STOP",
    "stop": "STOP",
    "continue": "CONTINUE",
}

# two-character operators are matched before single characters
OPERATORS = {
    "==": "EQEQ",
    "!=": "NOTEQ",
    "<=": "LTE",
    ">=": "GTE",
    "<": "LT",
    ">": "GT",
    "=": "ASSIGN",
    "+": "PLUS",
    "-": "MINUS",
    "*": "STAR",
    "/": "SLASH",
    "(": "LPAREN",
    ")": "RPAREN",
    "{": "LBRACE",
    "}": "RBRACE",
}


def is_digit(ch):
    # ASCII only; str.isdigit() also accepts characters such as "²"
    return "0" <= ch <= "9"


class Token:
    def __init__(self, type, value=None, line=1, column=1):
        self.type = type
        self.value = value
        self.line = line
        self.column = column

    def __repr__(self):
        if self.value is not None:
            return f"{self.type}({self.value})"
        return f"{self.type}"


class Lexer:
    def __init__(self, text):
        self.text = text
        self.pos = 0
        self.current_char = text[0] if text else None
        self.line = 1
        self.column = 1

    def advance(self):
        # track line/column based on current_char before moving
        if self.current_char == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.pos += 1
        if self.pos >= len(self.text):
            self.current_char = None
        else:
            self.current_char = self.text[self.pos]

    def peek(self):
        nxt = self.pos + 1
        if nxt >= len(self.text):
            return None
        return self.text[nxt]

    # spaces/tabs only, NEWLINE is a real token
    def skip_whitespace(self):
        while self.current_char and self.current_char in " \t\r":
            self.advance()

    def skip_comment(self):
        while self.current_char and self.current_char != "\n":
            self.advance()

    def read_identifier(self):
        start_line, start_col = self.line, self.column
        result = ""
        while self.current_char and (self.current_char.isalnum() or self.current_char == "_"):
            result += self.current_char
            self.advance()
        if result in KEYWORDS:
            return Token(KEYWORDS[result], line=start_line, column=start_col)
        return Token("IDENT", result, line=start_line, column=start_col)

    def read_number(self):
        start_line, start_col = self.line, self.column
        result = ""
        while self.current_char and is_digit(self.current_char):
            result += self.current_char
            self.advance()
        if self.current_char and (self.current_char.isalpha() or self.current_char == "_"):
            raise CompileError(f"Invalid number literal: {result}{self.current_char}", start_line, start_col)
        return Token("NUMBER", int(result), line=start_line, column=start_col)

    def get_next_token(self):
        while self.current_char:

            if self.current_char == "\n":
                start_line, start_col = self.line, self.column
                self.advance()
                return Token("NEWLINE", line=start_line, column=start_col)

            if self.current_char in " \t\r":
                self.skip_whitespace()
                continue

            if self.current_char == "#":
                self.skip_comment()
                continue

            if self.current_char.isalpha() or self.current_char == "_":
                return self.read_identifier()

            if is_digit(self.current_char):
                return self.read_number()

            start_line, start_col = self.line, self.column
            pair = self.current_char + (self.peek() or "")
            if pair in OPERATORS:
                self.advance()
                self.advance()
                return Token(OPERATORS[pair], line=start_line, column=start_col)
            if self.current_char in OPERATORS:
                token_type = OPERATORS[self.current_char]
                self.advance()
                return Token(token_type, line=start_line, column=start_col)

            raise CompileError(f"Unknown character: {self.current_char}", self.line, self.column)

        return Token("EOF", line=self.line, column=self.column)
