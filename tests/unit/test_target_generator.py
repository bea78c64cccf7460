import os
import shlex
import sys
import time
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
for src in (ROOT / "services" / "phygital" / "src", ROOT / "services" / "common" / "src"):
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))

from phygital.config import CompilerConfig  # noqa: E402
from phygital.errors import CompilationFailedError  # noqa: E402
from phygital.targets.compiler import MindARCompiler  # noqa: E402
from phygital.targets.generator import ARTargetGenerator  # noqa: E402
from phygital.targets.workspace import temp_workspace  # noqa: E402

PYTHON = shlex.quote(sys.executable)


class CannedCompiler:
    def __init__(self, payload: bytes = b"MIND\x00\x01binary"):
        self.payload = payload
        self.calls = []

    def compile(self, input_path: Path, output_path: Path) -> None:  # noqa: D401
        self.calls.append((input_path, output_path, input_path.read_bytes()))
        output_path.write_bytes(self.payload)


class SilentCompiler:
    def compile(self, input_path: Path, output_path: Path) -> None:  # noqa: D401
        return None


class ExplodingCompiler:
    def compile(self, input_path: Path, output_path: Path) -> None:  # noqa: D401
        (input_path.parent / "partial.tmp").write_bytes(b"junk")
        raise RuntimeError("compiler crashed")


def test_generate_returns_compiler_output(tmp_path: Path):
    compiler = CannedCompiler()
    generator = ARTargetGenerator(compiler, temp_root=tmp_path)

    target = generator.generate(b"composite-png")

    assert target.data == b"MIND\x00\x01binary"
    assert target.byte_size == len(b"MIND\x00\x01binary")
    assert target.generated_at is not None
    input_path, output_path, written = compiler.calls[0]
    assert written == b"composite-png"
    assert input_path.parent == output_path.parent
    assert output_path.suffix == ".mind"
    assert list(tmp_path.iterdir()) == []


def test_missing_output_is_a_failure(tmp_path: Path):
    generator = ARTargetGenerator(SilentCompiler(), temp_root=tmp_path)

    with pytest.raises(CompilationFailedError, match="did not produce"):
        generator.generate(b"composite-png")
    assert list(tmp_path.iterdir()) == []


def test_empty_output_is_a_failure(tmp_path: Path):
    generator = ARTargetGenerator(CannedCompiler(payload=b""), temp_root=tmp_path)

    with pytest.raises(CompilationFailedError, match="empty"):
        generator.generate(b"composite-png")


def test_workspace_removed_after_unexpected_error(tmp_path: Path):
    generator = ARTargetGenerator(ExplodingCompiler(), temp_root=tmp_path)

    with pytest.raises(RuntimeError):
        generator.generate(b"composite-png")
    assert list(tmp_path.iterdir()) == []


def test_empty_composite_is_rejected(tmp_path: Path):
    with pytest.raises(CompilationFailedError):
        ARTargetGenerator(CannedCompiler(), temp_root=tmp_path).generate(b"")


def test_nonzero_exit_cleans_up_and_captures_output(tmp_path: Path):
    script = "import sys; print('bad image'); sys.stderr.write('boom'); sys.exit(3)"
    compiler = MindARCompiler(command=f"{PYTHON} -c {shlex.quote(script)}", timeout=30)
    generator = ARTargetGenerator(compiler, temp_root=tmp_path)

    with pytest.raises(CompilationFailedError) as excinfo:
        generator.generate(b"composite-png")

    assert excinfo.value.returncode == 3
    assert "bad image" in excinfo.value.stdout
    assert "boom" in excinfo.value.stderr
    assert list(tmp_path.iterdir()) == []


def test_real_subprocess_writes_target(tmp_path: Path):
    script = "import sys; open(sys.argv[-1], 'wb').write(b'compiled')"
    compiler = MindARCompiler(command=f"{PYTHON} -c {shlex.quote(script)}", timeout=30)
    generator = ARTargetGenerator(compiler, temp_root=tmp_path / "space dir")

    assert generator.generate(b"composite-png").data == b"compiled"
    assert list((tmp_path / "space dir").iterdir()) == []


def test_timeout_is_reported_as_compilation_failure(tmp_path: Path):
    script = "import time; time.sleep(10)"
    compiler = MindARCompiler(command=f"{PYTHON} -c {shlex.quote(script)}", timeout=0.5)

    with pytest.raises(CompilationFailedError, match="timed out after 0.5s"):
        ARTargetGenerator(compiler, temp_root=tmp_path).generate(b"composite-png")
    assert list(tmp_path.iterdir()) == []


def test_missing_executable_is_reported(tmp_path: Path):
    compiler = MindARCompiler(command="definitely-not-a-real-mindar-binary compile")

    with pytest.raises(CompilationFailedError, match="not available"):
        ARTargetGenerator(compiler, temp_root=tmp_path).generate(b"composite-png")
    assert list(tmp_path.iterdir()) == []


def test_build_command_appends_paths():
    compiler = MindARCompiler(command="npx -y mind-ar-js-cli@latest compile")

    argv = compiler.build_command(Path("/tmp/a b/in.png"), Path("/tmp/a b/out.mind"))

    assert argv == [
        "npx",
        "-y",
        "mind-ar-js-cli@latest",
        "compile",
        "-i",
        "/tmp/a b/in.png",
        "-o",
        "/tmp/a b/out.mind",
    ]


def test_temp_workspaces_are_unique(tmp_path: Path):
    with temp_workspace(tmp_path) as first, temp_workspace(tmp_path) as second:
        assert first.path != second.path
        first.file("a.png").write_bytes(b"a")
        second.file("a.png").write_bytes(b"b")
    assert list(tmp_path.iterdir()) == []


@pytest.mark.skipif(os.name == "nt", reason="process groups are POSIX-only")
def test_timeout_kills_processes_spawned_by_the_compiler(tmp_path: Path):
    marker = tmp_path / "late-write"
    child = "import sys, time; time.sleep(1.5); open(sys.argv[1], 'w').write('still running')"
    launcher = (
        "import subprocess, sys, time; "
        f"subprocess.Popen([sys.executable, '-c', {child!r}, {str(marker)!r}]); "
        "time.sleep(10)"
    )
    compiler = MindARCompiler(command=f"{PYTHON} -c {shlex.quote(launcher)}", timeout=0.5)
    workspace_root = tmp_path / "work"

    with pytest.raises(CompilationFailedError, match="timed out"):
        ARTargetGenerator(compiler, temp_root=workspace_root).generate(b"composite-png")

    time.sleep(2.5)
    assert not marker.exists()
    assert list(workspace_root.iterdir()) == []


def test_node_path_reaches_the_compiler(tmp_path: Path):
    config = CompilerConfig(node_path="/opt/mindar/node_modules")
    script = "import os, sys; open(sys.argv[-1], 'w').write(os.environ['NODE_PATH'])"
    compiler = MindARCompiler(
        command=f"{PYTHON} -c {shlex.quote(script)}", timeout=30, extra_env=config.env
    )

    target = ARTargetGenerator(compiler, temp_root=tmp_path).generate(b"composite-png")

    assert target.data == b"/opt/mindar/node_modules"
    assert CompilerConfig().env == {}
