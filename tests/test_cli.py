"""Command line tool exit codes and output."""
import irhandle
from irhandle.tools.cli import main, version_lines

VALID_LL = """\
define i32 @answer() {
entry:
  ret i32 42
}
"""


def _write(tmp_path, text, name="answer.ll"):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def test_info(capsys):
    assert main(["info"]) == 0
    out = capsys.readouterr().out
    assert out.startswith(f"irhandle {irhandle.__version__}")
    assert "\nLLVM " in out
    assert "Default triple:" in out
    assert "x86-64" in out
    assert "aggressive" in out


def test_verify_ok(tmp_path, capsys):
    src = _write(tmp_path, VALID_LL)
    assert main(["verify", str(src)]) == 0
    assert "ok" in capsys.readouterr().out


def test_verify_invalid(tmp_path, capsys):
    src = _write(tmp_path, "define i32 @f() {\nentry:\n  ret void\n}\n")
    assert main(["verify", str(src)]) == 2
    assert "IH0202" in capsys.readouterr().err


def test_verify_missing_file(tmp_path, capsys):
    assert main(["verify", str(tmp_path / "nope.ll")]) == 2
    assert "cannot read" in capsys.readouterr().err


def test_emit(tmp_path):
    src = _write(tmp_path, VALID_LL)
    out = tmp_path / "answer.o"
    assert main(["emit", str(src), "-o", str(out), "--opt", "O0"]) == 0
    assert out.stat().st_size > 0


def test_emit_default_output_name(tmp_path):
    src = _write(tmp_path, VALID_LL)
    assert main(["emit", str(src), "--no-verify"]) == 0
    assert (tmp_path / "answer.o").exists()


def test_emit_error_exit_code(tmp_path, capsys):
    src = _write(tmp_path, VALID_LL)
    assert main(["emit", str(src), "-o", str(tmp_path / "missing" / "a.o")]) == 2
    assert "IH0302" in capsys.readouterr().err


def test_version_lines():
    lines = version_lines()
    assert [line.split()[0] for line in lines] == ["irhandle", "Python", "llvmlite", "LLVM"]
