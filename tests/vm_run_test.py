import io

import pytest

from stackvm.bytecode import INT_MAX, INT_MIN, Program
from stackvm.errors import RunResult, StepLimitExceeded
from stackvm.vm import VM, run

# i = 0; while i < 3: i += 1
LOOP = [
    ("LOAD", 0), ("WRITE", "i"), ("READ", "i"), ("LOAD", 3), ("CMP_LT",), ("JUMP_IF", 10),
    ("READ", "i"), ("LOAD", 1), ("ADD",), ("WRITE", "i"), ("JUMP", 1), ("READ", "i"), ("RETURN",),
]


def value_of(instructions, **options):
    result = run(Program(instructions), **options)
    if not result.ok:
        raise AssertionError(f"Expected a value, got {result!r}")
    return result.value


def test_load_val():
    assert value_of([("LOAD", 1), ("LOAD", 2), ("LOAD", -5), ("RETURN",)]) == -5


def test_read_write_val():
    assert value_of([("LOAD", 1), ("WRITE", "x"), ("LOAD", 5), ("READ", "x"), ("RETURN",)]) == 1


def test_write_overwrites():
    program = [("LOAD", 1), ("WRITE", "x"), ("LOAD", 9), ("WRITE", "x"), ("READ", "x"), ("RETURN",)]
    assert value_of(program) == 9


def test_add_val():
    assert value_of([("LOAD", 1), ("LOAD", 3), ("ADD",), ("RETURN",)]) == 4
    program = [
        ("LOAD", 3), ("WRITE", "x"), ("LOAD", 7), ("WRITE", "y"),
        ("READ", "x"), ("READ", "y"), ("ADD",), ("RETURN",),
    ]
    assert value_of(program) == 10


def test_sub_mul_div_val():
    assert value_of([("LOAD", 1), ("LOAD", 3), ("SUB",), ("RETURN",)]) == -2
    assert value_of([("LOAD", 2), ("LOAD", 3), ("MUL",), ("RETURN",)]) == 6
    assert value_of([("LOAD", 4), ("LOAD", 2), ("DIV",), ("RETURN",)]) == 2


@pytest.mark.parametrize("lhs, rhs, expected", [
    (7, 2, 3),
    (-7, 2, -3),
    (7, -2, -3),
    (-7, -2, 3),
    (1, 3, 0),
])
def test_div_truncates_toward_zero(lhs, rhs, expected):
    assert value_of([("LOAD", lhs), ("LOAD", rhs), ("DIV",), ("RETURN",)]) == expected


@pytest.mark.parametrize("lhs, opcode, rhs, expected", [
    (INT_MAX, "ADD", 1, INT_MIN),
    (INT_MIN, "SUB", 1, INT_MAX),
    (INT_MAX, "MUL", 2, -2),
    (INT_MIN, "DIV", -1, INT_MIN),
])
def test_arithmetic_wraps_to_64_bits(lhs, opcode, rhs, expected):
    assert value_of([("LOAD", lhs), ("LOAD", rhs), (opcode,), ("RETURN",)]) == expected


@pytest.mark.parametrize("opcode, lhs, rhs, expected", [
    ("CMP_EQ", 2, 2, 1),
    ("CMP_EQ", 2, 3, 0),
    ("CMP_NE", 2, 3, 1),
    ("CMP_NE", 2, 2, 0),
    ("CMP_GT", 3, 2, 1),
    ("CMP_GT", 2, 3, 0),
    ("CMP_LT", 2, 3, 1),
    ("CMP_LT", 3, 3, 0),
    ("CMP_GE", 3, 3, 1),
    ("CMP_GE", 2, 3, 0),
    ("CMP_LE", 3, 3, 1),
    ("CMP_LE", 4, 3, 0),
])
def test_comparisons_push_one_or_zero(opcode, lhs, rhs, expected):
    assert value_of([("LOAD", lhs), ("LOAD", rhs), (opcode,), ("RETURN",)]) == expected


def test_from_assignment():
    program = [
        ("LOAD", 1), ("WRITE", "x"), ("LOAD", 3), ("WRITE", "y"), ("READ", "x"),
        ("LOAD", 1), ("ADD",), ("READ", "y"), ("MUL",), ("RETURN",),
    ]
    assert value_of(program) == 6


def test_unconditional_jump_resumes_after_target():
    # JUMP 2 resumes at 3, so LOAD 5 is skipped
    program = [("LOAD", 4), ("JUMP", 2), ("LOAD", 5), ("LOAD", 7), ("ADD",), ("RETURN",)]
    assert value_of(program) == 11


def test_jump_if_zero_transfers():
    program = [("LOAD", 0), ("JUMP_IF", 3), ("LOAD", 10), ("RETURN",), ("LOAD", 20), ("RETURN",)]
    assert value_of(program) == 20


def test_jump_if_nonzero_falls_through():
    program = [("LOAD", -1), ("JUMP_IF", 3), ("LOAD", 10), ("RETURN",), ("LOAD", 20), ("RETURN",)]
    assert value_of(program) == 10


def test_lt_loop():
    assert value_of(LOOP) == 3


def test_leftover_stack_is_ignored():
    assert value_of([("LOAD", 1), ("LOAD", 2), ("RETURN",)]) == 2


def test_result_reports_return_address():
    result = run([("LOAD", 1), ("RETURN",), ("LOAD", 2)])
    assert result == RunResult.success(1)
    assert result.ip == 1


def test_sequential_runs_do_not_leak_state():
    program = Program(LOOP)
    vm = VM(program)
    first = vm.run()
    second = vm.run()
    third = run(program)
    assert first == second == third == RunResult.success(3)


def test_each_run_starts_with_empty_variables():
    vm = VM([("LOAD", 1), ("WRITE", "x"), ("READ", "x"), ("RETURN",)])
    vm.run()
    assert vm.vars == {"x": 1}

    reader = VM([("READ", "x"), ("RETURN",)])
    assert not reader.run().ok
    assert not reader.run().ok


def test_trace_writes_one_line_per_instruction():
    out = io.StringIO()
    value = VM([("LOAD", 1), ("LOAD", 2), ("ADD",), ("RETURN",)], trace=True, trace_stream=out).run().unwrap()
    assert value == 3

    lines = out.getvalue().splitlines()
    assert len(lines) == 4
    assert lines[0] == "TRACE ip=0000 LOAD 1 stack=[]"
    assert lines[2] == "TRACE ip=0002 ADD stack=[1, 2]"
    assert lines[3] == "TRACE ip=0003 RETURN stack=[3]"


def test_max_steps_bounds_a_jump_cycle():
    # JUMP 0 at address 1 resumes at 1 forever
    vm = VM([("LOAD", 1), ("JUMP", 0)], max_steps=50)
    with pytest.raises(StepLimitExceeded) as info:
        vm.run()
    assert info.value.max_steps == 50
    assert info.value.ip == 1


def test_max_steps_counts_executed_instructions():
    assert VM([("LOAD", 1), ("RETURN",)], max_steps=2).run().unwrap() == 1
    with pytest.raises(StepLimitExceeded):
        VM([("LOAD", 1), ("RETURN",)], max_steps=1).run()


def test_no_step_limit_by_default():
    assert VM(LOOP).max_steps is None
    assert value_of(LOOP, max_steps=1000) == 3
