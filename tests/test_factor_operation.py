import textwrap
from pathlib import Path

import pytest

from igor_automation.errors import FactorExecError, FactorParseError, UnknownFactorType
from igor_automation.operations.factor import RunFactorOperation
from igor_automation.types import Context


def write_script(tmp_path: Path, body: str, name: str = "factor.sh") -> Path:
    script = tmp_path / name
    script.write_text("#!/bin/sh\n" + textwrap.dedent(body))
    script.chmod(0o755)
    return script


def test_script_factor_merges_toml_output(tmp_path: Path) -> None:
    script = write_script(tmp_path, """\
        echo 'key = "value"'
        echo '[network]'
        echo 'interfaces = ["eth0"]'
        """)
    ctx = Context(automatic={"network": {"interfaces": ["lo"]}})
    op = RunFactorOperation({"path": str(script), "type": "script"})

    op.prepare(ctx)

    assert ctx.automatic["key"] == "value"
    assert ctx.automatic["network"]["interfaces"] == ["lo", "eth0"]


def test_script_factor_nonzero_exit(tmp_path: Path) -> None:
    script = write_script(tmp_path, "exit 1\n")
    op = RunFactorOperation({"path": str(script), "type": "script"})

    with pytest.raises(FactorExecError) as excinfo:
        op.prepare(Context())

    assert excinfo.value.returncode == 1
    assert "exited with 1" in str(excinfo.value)


def test_script_factor_killed_by_signal(tmp_path: Path) -> None:
    script = write_script(tmp_path, "kill -9 $$\n")
    op = RunFactorOperation({"path": str(script), "type": "script"})

    with pytest.raises(FactorExecError) as excinfo:
        op.prepare(Context())

    assert excinfo.value.signal == 9
    assert "signal 9" in str(excinfo.value)


def test_script_factor_cannot_start(tmp_path: Path) -> None:
    op = RunFactorOperation({"path": str(tmp_path / "missing.sh"), "type": "script"})

    with pytest.raises(FactorExecError):
        op.prepare(Context())


def test_script_factor_invalid_toml(tmp_path: Path) -> None:
    script = write_script(tmp_path, "echo 'not = = toml'\n")
    op = RunFactorOperation({"path": str(script), "type": "script"})

    with pytest.raises(FactorParseError) as excinfo:
        op.prepare(Context())

    assert "not = = toml" in excinfo.value.output


def test_script_factor_non_utf8_output(tmp_path: Path) -> None:
    script = write_script(tmp_path, "printf 'host = \"caf\\351\"\\n'\n")
    op = RunFactorOperation({"path": str(script), "type": "script"})
    ctx = Context()

    with pytest.raises(FactorParseError) as excinfo:
        op.prepare(ctx)

    assert excinfo.value.path == script
    assert "host = " in excinfo.value.output
    assert dict(ctx.automatic) == {}


def test_python_factor_callable(tmp_path: Path) -> None:
    factor = tmp_path / "cpu.py"
    factor.write_text("def factor():\n    return {'cpu': {'cores': 4}}\n")
    ctx = Context(automatic={"cpu": {"arch": "x86_64"}})
    op = RunFactorOperation({"path": str(factor)})

    facts = op.prepare(ctx)

    assert facts == {"cpu": {"cores": 4}}
    assert ctx.automatic["cpu"] == {"arch": "x86_64", "cores": 4}


def test_python_factor_mapping(tmp_path: Path) -> None:
    factor = tmp_path / "static.py"
    factor.write_text("FACTS = {'datacenter': 'fra1'}\n")
    ctx = Context()

    RunFactorOperation({"path": str(factor), "type": "python"}).prepare(ctx)

    assert ctx.automatic == {"datacenter": "fra1"}


def test_python_factor_errors_are_fatal(tmp_path: Path) -> None:
    factor = tmp_path / "broken.py"
    factor.write_text("def factor():\n    raise RuntimeError('no facts today')\n")
    op = RunFactorOperation({"path": str(factor)})

    with pytest.raises(FactorExecError) as excinfo:
        op.prepare(Context())

    assert "no facts today" in str(excinfo.value)


def test_python_factor_must_return_mapping(tmp_path: Path) -> None:
    factor = tmp_path / "listy.py"
    factor.write_text("def factor():\n    return ['a']\n")

    with pytest.raises(FactorExecError):
        RunFactorOperation({"path": str(factor)}).prepare(Context())


def test_unknown_factor_type(tmp_path: Path) -> None:
    op = RunFactorOperation({"path": str(tmp_path / "x"), "type": "perl"})

    with pytest.raises(UnknownFactorType) as excinfo:
        op.prepare(Context())

    assert excinfo.value.factor_type == "perl"
    assert "supported: python, script" in str(excinfo.value)


def test_factor_actions_are_noops(tmp_path: Path) -> None:
    op = RunFactorOperation({"path": str(tmp_path / "x")})
    ctx = Context()

    assert op.check(ctx) is True
    assert op.apply(ctx) == (False, "noop")
    assert op.diff(ctx) == ""
    assert ctx.automatic == {}
