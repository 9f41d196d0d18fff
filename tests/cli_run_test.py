import os
import subprocess
import sys

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


def run_cli(*args):
    return subprocess.run(
        [sys.executable, "-m", "stackvm", *args],
        text=True,
        capture_output=True,
        cwd=ROOT,
        timeout=10,
    )


def write_file(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_run_tally_sample():
    proc = run_cli("run", os.path.join("samples", "count.tally"))
    assert proc.returncode == 0, proc.stdout + proc.stderr
    assert proc.stdout.strip() == "3"


def test_run_assembly_sample():
    proc = run_cli("run", os.path.join("samples", "skip.tasm"))
    assert proc.returncode == 0, proc.stdout + proc.stderr
    assert proc.stdout.strip() == "11"


def test_run_fault_exits_nonzero(tmp_path):
    path = write_file(tmp_path, "div.tasm", "LOAD 1\nLOAD 0\nDIV\nRETURN\n")
    proc = run_cli("run", path)
    assert proc.returncode == 1
    assert "Runtime error: divide by zero (DIVIDE_BY_ZERO)" in proc.stdout
    assert "ip=0002" in proc.stdout
    assert "at div.tasm:3" in proc.stdout


def test_run_compile_error(tmp_path):
    path = write_file(tmp_path, "bad.tally", "x = (1 +\n")
    proc = run_cli("run", path)
    assert proc.returncode == 1
    assert "at line 1" in proc.stdout


def test_run_with_trace():
    proc = run_cli("run", "--trace", os.path.join("samples", "skip.tasm"))
    assert proc.returncode == 0
    lines = proc.stdout.splitlines()
    assert lines[0] == "TRACE ip=0000 LOAD 4 stack=[]"
    assert "TRACE ip=0003 LOAD 7 stack=[4]" in lines
    assert not any(line.startswith("TRACE ip=0002") for line in lines)
    assert lines[-1] == "11"


def test_run_with_step_limit(tmp_path):
    path = write_file(tmp_path, "spin.tally", "while 1 { }\n")
    proc = run_cli("run", path, "--max-steps", "100")
    assert proc.returncode == 1
    assert "Step limit exceeded (100 steps" in proc.stdout


def test_bad_max_steps_value():
    proc = run_cli("run", os.path.join("samples", "skip.tasm"), "--max-steps", "lots")
    assert proc.returncode == 1
    assert "--max-steps expects an integer" in proc.stdout


def test_build_prints_listing():
    proc = run_cli("build", os.path.join("samples", "count.tally"))
    assert proc.returncode == 0, proc.stdout + proc.stderr
    assert proc.stdout.startswith("INSTRUCTIONS:")
    assert "0000  JUMP 0" in proc.stdout
    assert "; resumes at 0001" in proc.stdout
    assert "JUMP_IF 11" in proc.stdout


def test_parse_prints_ast():
    proc = run_cli("parse", os.path.join("samples", "count.tally"))
    assert proc.returncode == 0, proc.stdout + proc.stderr
    assert "type: Program" in proc.stdout
    assert "type: While" in proc.stdout
    assert "op: <" in proc.stdout


def test_debug_shows_traceback(tmp_path):
    path = write_file(tmp_path, "bad.tasm", "PUSH 1\n")
    proc = run_cli("run", "--debug", path)
    assert proc.returncode == 1
    assert "Traceback" in proc.stderr
    assert "AssembleError" in proc.stderr


def test_usage_and_unknown_command():
    proc = run_cli()
    assert proc.returncode == 1
    assert "Usage:" in proc.stdout

    proc = run_cli("explode", "x.tally")
    assert proc.returncode == 1
    assert "Unknown command: explode" in proc.stdout
