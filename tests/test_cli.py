# =============================================================================
# test_cli.py - possum-asm Command-Line Tests
# =============================================================================
# Test coverage includes:
#   - Default and explicit output files
#   - Symbol file generation
#   - -D defines and their errors
#   - @echo output and --quiet
#   - Exit codes for assembly errors
# =============================================================================

import pytest
from click.testing import CliRunner

from possum_asm import __version__
from possum_asm.cli.errors import ExitCode
from possum_asm.cli.posasm import main, parse_define


# =============================================================================
# Helper Functions
# =============================================================================

@pytest.fixture
def source_file(tmp_path):
    """Write a source file and return its path."""
    def write(text: str, name: str = "prog.asm"):
        path = tmp_path / name
        path.write_text(text)
        return path
    return write


def run(*args):
    return CliRunner().invoke(main, [str(arg) for arg in args])


# =============================================================================
# CLI Tests
# =============================================================================

class TestPossumAsm:
    """Test the possum-asm command."""

    def test_help(self):
        result = run("--help")
        assert result.exit_code == 0
        assert "--define" in result.output

    def test_version(self):
        result = run("--version")
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_default_output(self, source_file):
        path = source_file("@db 1, 2\n")
        result = run(path)
        assert result.exit_code == 0, result.output
        assert path.with_suffix(".bin").read_bytes() == b"\x01\x02"

    def test_explicit_output_and_symbols(self, source_file, tmp_path):
        path = source_file("@org $8000\nstart: @dw start\n")
        out = tmp_path / "image.bin"
        sym = tmp_path / "image.sym"
        result = run(path, "-o", out, "-s", sym)
        assert result.exit_code == 0, result.output
        assert out.read_bytes() == b"\x00\x80"
        assert "start $8000" in sym.read_text()

    def test_defines(self, source_file):
        path = source_file("@db BASE, DEBUG\n")
        result = run(path, "-D", "BASE=$10", "-D", "DEBUG")
        assert result.exit_code == 0, result.output
        assert path.with_suffix(".bin").read_bytes() == b"\x10\x01"

    def test_invalid_define(self, source_file):
        path = source_file("@db 1\n")
        result = run(path, "-D", "BASE=oops")
        assert result.exit_code == ExitCode.INVALID_ARGS
        assert "invalid value" in result.output

    def test_echo_printed(self, source_file):
        path = source_file('@echo "hello"\n')
        result = run(path)
        assert "hello" in result.output

    def test_quiet(self, source_file):
        path = source_file('@echo "hello"\n')
        result = run(path, "-q")
        assert result.exit_code == 0
        assert "hello" not in result.output

    def test_assembly_error(self, source_file, tmp_path):
        path = source_file("@dw ghost\n")
        result = run(path)
        assert result.exit_code == ExitCode.BUILD_ERROR
        assert "unresolved symbol 'ghost'" in result.output
        assert not path.with_suffix(".bin").exists()

    def test_collected_errors_reported_together(self, source_file):
        path = source_file("@db 300\n@dw 70000\n")
        result = run(path)
        assert result.exit_code == ExitCode.BUILD_ERROR
        assert "2 errors" in result.output

    def test_missing_input(self, tmp_path):
        result = run(tmp_path / "nope.asm")
        assert result.exit_code == 2


class TestParseDefine:
    """Test -D argument parsing."""

    def test_name_and_value(self):
        assert parse_define("SIZE=0x20") == ("SIZE", 0x20)

    def test_bare_name(self):
        assert parse_define("DEBUG") == ("DEBUG", 1)

    def test_empty_name(self):
        import click
        with pytest.raises(click.BadParameter):
            parse_define("=1")
