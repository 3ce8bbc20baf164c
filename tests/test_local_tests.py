import json
import textwrap
import time
from pathlib import Path

import pytest

from ai_tdd.core.errors import ImplementationFileError, TestRunnerNotFoundError, UnsupportedTestFileError
from ai_tdd.testing.frameworks import JAVASCRIPT, PYTHON, TYPESCRIPT, profile_for
from ai_tdd.testing.local_tests import TestRunner


def _write_project(root: Path, implementation: str, test_body: str) -> tuple[Path, Path]:
    src = root / "src"
    src.mkdir()
    impl = src / "calc.py"
    impl.write_text(implementation, encoding="utf-8")
    test_file = root / "test_calc.py"
    test_file.write_text(textwrap.dedent(test_body), encoding="utf-8")
    return test_file, impl


ADD_TEST = """
from calc import add


def test_add():
    assert add(1, 2) == 3
"""


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / ".ai-tdd"


def test_profile_for_extensions() -> None:
    assert profile_for("calc.test.js") is JAVASCRIPT
    assert profile_for("calc.test.mjs") is JAVASCRIPT
    assert profile_for("Calc.test.TSX") is TYPESCRIPT
    assert profile_for("test_calc.py") is PYTHON
    with pytest.raises(UnsupportedTestFileError, match="Unsupported file extension: .rb"):
        profile_for("calc_spec.rb")


def test_passing_run_is_recorded(tmp_path: Path, data_dir: Path) -> None:
    test_file, impl = _write_project(tmp_path, "def add(a, b):\n    return a + b\n", ADD_TEST)
    runner = TestRunner(tmp_path, data_dir, timeout=60)

    result = runner.run(test_file, impl)

    assert result.success is True
    assert "1 passed" in result.output
    assert runner.history.run_count == 1

    document = json.loads((data_dir / "test-history.json").read_text(encoding="utf-8"))
    assert document["runCount"] == 1
    assert document["results"][0]["success"] is True


def test_failing_run_reports_output(tmp_path: Path, data_dir: Path) -> None:
    test_file, impl = _write_project(tmp_path, "def add(a, b):\n    return a - b\n", ADD_TEST)
    runner = TestRunner(tmp_path, data_dir, timeout=60)

    result = runner.run(test_file, impl)

    assert result.success is False
    assert "1 failed" in result.output
    assert result.error is not None


def test_timeout_returns_only_timeout_message(tmp_path: Path, data_dir: Path) -> None:
    slow_test = """
    import time

    from calc import add


    def test_slow():
        print("partial output")
        time.sleep(30)
        assert add(1, 2) == 3
    """
    test_file, impl = _write_project(tmp_path, "def add(a, b):\n    return a + b\n", slow_test)
    runner = TestRunner(tmp_path, data_dir, timeout=1)

    result = runner.run(test_file, impl)

    assert result.success is False
    assert result.output == "Test execution timed out after 1 seconds"
    assert result.error == result.output
    assert "partial output" not in result.output
    assert runner.history.run_count == 1


def test_missing_implementation_fails_before_running(tmp_path: Path, data_dir: Path) -> None:
    test_file, impl = _write_project(tmp_path, "", ADD_TEST)
    impl.unlink()
    runner = TestRunner(tmp_path, data_dir)

    with pytest.raises(ImplementationFileError):
        runner.run(test_file, impl)
    assert runner.history.run_count == 0
    assert not (data_dir / "test-history.json").exists()


def test_spawn_failure_is_a_failed_result(tmp_path: Path, data_dir: Path, monkeypatch) -> None:
    test_file, impl = _write_project(tmp_path, "def add(a, b):\n    return a + b\n", ADD_TEST)
    runner = TestRunner(tmp_path, data_dir)

    def broken_popen(*args, **kwargs):
        raise OSError("exec format error")

    monkeypatch.setattr("ai_tdd.testing.local_tests.subprocess.Popen", broken_popen)

    result = runner.run(test_file, impl)

    assert result.success is False
    assert "exec format error" in (result.error or "")
    assert runner.history.run_count == 1


def test_ensure_available_rejects_unsupported_extension(tmp_path: Path, data_dir: Path) -> None:
    runner = TestRunner(tmp_path, data_dir)
    with pytest.raises(UnsupportedTestFileError):
        runner.ensure_available(tmp_path / "calc_spec.rb")


def test_ensure_available_reports_missing_vitest(tmp_path: Path, data_dir: Path) -> None:
    runner = TestRunner(tmp_path, data_dir)
    with pytest.raises(TestRunnerNotFoundError):
        runner.ensure_available(tmp_path / "calc.test.ts")


def test_ensure_available_reports_missing_interpreter(tmp_path: Path, data_dir: Path) -> None:
    runner = TestRunner(tmp_path, data_dir, python_executable=tmp_path / "no-such-python")
    with pytest.raises(TestRunnerNotFoundError):
        runner.ensure_available(tmp_path / "test_calc.py")


def test_history_is_shared_across_runner_instances(tmp_path: Path, data_dir: Path) -> None:
    test_file, impl = _write_project(tmp_path, "def add(a, b):\n    return a + b\n", ADD_TEST)

    TestRunner(tmp_path, data_dir, timeout=60).run(test_file, impl)
    second = TestRunner(tmp_path, data_dir, timeout=60)
    assert second.history.run_count == 1

    second.run(test_file, impl)
    assert second.history.run_count == 2
    assert len(second.history.results) == 2


def _process_alive(pid: int) -> bool:
    try:
        stat = Path(f"/proc/{pid}/stat").read_text(encoding="utf-8")
    except FileNotFoundError:
        return False
    return stat.rsplit(")", 1)[1].split()[0] != "Z"


@pytest.mark.skipif(not Path("/proc/self/stat").exists(), reason="needs procfs")
def test_timeout_kills_processes_spawned_by_the_test(tmp_path: Path, data_dir: Path) -> None:
    pid_file = tmp_path / "child.pid"
    spawning_test = f"""
    import subprocess
    import sys
    import time
    from pathlib import Path

    from calc import add


    def test_spawns_child():
        child = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(45)"])
        Path({str(pid_file)!r}).write_text(str(child.pid))
        time.sleep(60)
        assert add(1, 2) == 3
    """
    test_file, impl = _write_project(tmp_path, "def add(a, b):\n    return a + b\n", spawning_test)
    runner = TestRunner(tmp_path, data_dir, timeout=3)

    result = runner.run(test_file, impl)

    assert result.output == "Test execution timed out after 3 seconds"
    child_pid = int(pid_file.read_text())
    deadline = time.monotonic() + 5
    while _process_alive(child_pid) and time.monotonic() < deadline:
        time.sleep(0.1)
    assert not _process_alive(child_pid)
