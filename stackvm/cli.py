import sys
import traceback

from colorama import Fore, Style, just_fix_windows_console

from stackvm.assembler import assemble, format_listing
from stackvm.ast_nodes import Block, If, Program, Return, While
from stackvm.compiler import Compiler
from stackvm.errors import CompileError
from stackvm.lexer import Lexer
from stackvm.parser import Parser
from stackvm.vm import VM

USAGE = """Usage:
  python -m stackvm parse <file.tally>
  python -m stackvm build <file.tally|file.tasm>
  python -m stackvm run <file.tally|file.tasm> [--trace] [--max-steps N]
  python -m stackvm repl [--max-steps N]
  (optional) --debug to show Python traceback"""


def paint(text: str, color: str) -> str:
    if not sys.stdout.isatty():
        return text
    return f"{color}{text}{Style.RESET_ALL}"


# Simple AST printer (so you can SEE what the parser built)
def ast_to_dict(node):
    if node is None:
        return None

    t = node.__class__.__name__
    d = {"type": t}

    if t in ("Program", "Block"):
        d["statements"] = [ast_to_dict(s) for s in node.statements]
    elif t == "Assign":
        d["name"] = node.name
        d["value"] = ast_to_dict(node.value)
    elif t == "Literal":
        d["value"] = node.value
    elif t == "Var":
        d["name"] = node.name
    elif t == "Binary":
        d["op"] = node.op
        d["left"] = ast_to_dict(node.left)
        d["right"] = ast_to_dict(node.right)
    elif t == "If":
        d["condition"] = ast_to_dict(node.condition)
        d["then_block"] = ast_to_dict(node.then_block)
        d["else_block"] = ast_to_dict(node.else_block)
    elif t == "While":
        d["condition"] = ast_to_dict(node.condition)
        d["body"] = ast_to_dict(node.body)
    elif t == "Return":
        d["expr"] = ast_to_dict(node.expr)
    elif t in ("Stop", "Continue"):
        pass
    else:
        d["raw"] = str(node)

    return d


def pretty(obj, indent=0):
    sp = "  " * indent
    if isinstance(obj, dict):
        lines = []
        for k, v in obj.items():
            if isinstance(v, (dict, list)):
                lines.append(f"{sp}{k}:")
                lines.append(pretty(v, indent + 1))
            else:
                lines.append(f"{sp}{k}: {v}")
        return "\n".join(lines)
    if isinstance(obj, list):
        lines = []
        for item in obj:
            lines.append(f"{sp}-")
            lines.append(pretty(item, indent + 1))
        return "\n".join(lines)
    return f"{sp}{obj}"


def read_source(path):
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def load_program(path):
    source = read_source(path)
    if path.endswith(".tasm"):
        return assemble(source, source_path=path)

    program = Parser(Lexer(source)).parse()
    return Compiler(source_path=path).compile(program)


def report(e, debug: bool):
    if debug:
        traceback.print_exc()
    else:
        print(paint(str(e), Fore.RED))


def cmd_parse(path, debug: bool = False):
    try:
        program = Parser(Lexer(read_source(path))).parse()
    except Exception as e:
        report(e, debug)
        sys.exit(1)
    print(pretty(ast_to_dict(program)))


def cmd_build(path, debug: bool = False):
    try:
        program = load_program(path)
    except Exception as e:
        report(e, debug)
        sys.exit(1)

    print("INSTRUCTIONS:")
    for line in format_listing(program).splitlines():
        print(f"  {line}")


def cmd_run(path, debug: bool = False, trace: bool = False, max_steps=None):
    try:
        program = load_program(path)
        value = VM(program, max_steps=max_steps, trace=trace).run().unwrap()
    except Exception as e:
        report(e, debug)
        sys.exit(1)
    print(paint(str(value), Fore.GREEN))


def _count_braces_delta(line: str) -> int:
    # Minimal brace balancer for REPL multiline input.
    delta = 0
    for ch in line:
        if ch == "#":
            break
        if ch == "{":
            delta += 1
        elif ch == "}":
            delta -= 1
    return delta


def parse_snippet(source: str):
    """Returns ("statements", [stmt, ...]) or ("expr", node)."""
    try:
        return "statements", Parser(Lexer(source)).parse().statements
    except CompileError as parse_err:
        # If that fails, try parsing as a single expression and auto-print it.
        try:
            return "expr", Parser(Lexer(source)).parse_expression()
        except CompileError:
            raise parse_err


def contains_return(node) -> bool:
    if isinstance(node, Return):
        return True
    if isinstance(node, (list, Block)):
        statements = node if isinstance(node, list) else node.statements
        return any(contains_return(stmt) for stmt in statements)
    if isinstance(node, If):
        return contains_return(node.then_block) or contains_return(node.else_block)
    if isinstance(node, While):
        return contains_return(node.body)
    return False


def eval_snippet(history, source: str, max_steps=None):
    """Evaluate one REPL snippet against the accumulated statements.

    Every evaluation compiles and runs the whole history from scratch, so
    variables persist between snippets without sharing VM state.
    Returns the value to print (or None) and appends statements to history
    only when they ran without a fault. Snippets with a `return` are
    evaluated like expressions and never kept, otherwise every later run
    would stop at that return.
    """
    kind, parsed = parse_snippet(source)

    if kind == "expr":
        node = Return(parsed)
        node.line = getattr(parsed, "line", None)
        program = Compiler(source_path="<repl>").compile(Program(history + [node]))
        return VM(program, max_steps=max_steps).run().unwrap()

    program = Compiler(source_path="<repl>").compile(Program(history + parsed))
    value = VM(program, max_steps=max_steps).run().unwrap()
    if contains_return(parsed):
        return value
    history.extend(parsed)
    return None


def cmd_repl(debug: bool = False, max_steps=None):
    print("stackvm REPL. Type :q to quit.")

    history = []
    buffer_lines = []
    brace_depth = 0
    while True:
        prompt = "stackvm> " if not buffer_lines else "...> "
        try:
            line = input(prompt)
        except (EOFError, KeyboardInterrupt):
            print()
            break

        stripped = line.strip()
        if not buffer_lines and stripped in (":q", ":quit", "quit", "exit"):
            break

        if not stripped and brace_depth == 0 and not buffer_lines:
            continue

        buffer_lines.append(line)
        brace_depth += _count_braces_delta(line)

        # Wait for block completion if braces aren't balanced yet.
        if brace_depth > 0:
            continue

        source = "\n".join(buffer_lines) + "\n"
        buffer_lines = []
        brace_depth = 0

        try:
            value = eval_snippet(history, source, max_steps=max_steps)
        except Exception as e:
            report(e, debug)
            continue
        if value is not None:
            print(paint(str(value), Fore.GREEN))


def _take_flag(args, flag):
    if flag in args:
        args.remove(flag)
        return True
    return False


def _take_option(args, option):
    if option not in args:
        return None
    i = args.index(option)
    if i + 1 >= len(args):
        print(f"{option} expects a value")
        sys.exit(1)
    raw = args[i + 1]
    del args[i : i + 2]
    try:
        value = int(raw)
    except ValueError:
        print(f"{option} expects an integer, got {raw}")
        sys.exit(1)
    if value <= 0:
        print(f"{option} must be positive")
        sys.exit(1)
    return value


def main(argv=None):
    just_fix_windows_console()

    args = list(sys.argv[1:] if argv is None else argv)
    debug = _take_flag(args, "--debug")
    trace = _take_flag(args, "--trace")
    max_steps = _take_option(args, "--max-steps")

    if not args:
        print(USAGE)
        sys.exit(1)

    cmd = args[0]

    if cmd == "repl":
        if len(args) != 1:
            print(USAGE)
            sys.exit(1)
        cmd_repl(debug=debug, max_steps=max_steps)
        return

    if len(args) != 2:
        print(USAGE)
        sys.exit(1)

    path = args[1]

    if cmd == "parse":
        cmd_parse(path, debug=debug)
    elif cmd == "build":
        cmd_build(path, debug=debug)
    elif cmd == "run":
        cmd_run(path, debug=debug, trace=trace, max_steps=max_steps)
    else:
        print(f"Unknown command: {cmd}")
        sys.exit(1)


if __name__ == "__main__":
    main()
