import pytest

from app_orchestration.engine.plan import normalize_plan
from app_orchestration.engine.runner import PlanRunner
from app_orchestration.errors import ExternalToolError, PreconditionError, ShellError
from app_orchestration.models import PlanKind
from app_orchestration.shell import ShellAdapter
from app_orchestration.steps.base import Collaborators


@pytest.fixture
def shell():
    return ShellAdapter()


def test_output_is_returned_trimmed(shell):
    assert shell.run_shell_command("echo '  hello  '") == "hello"


def test_environment_and_cwd_are_applied(shell, tmp_path):
    output = shell.run_shell_command("echo $GREETING; pwd", cwd=str(tmp_path), environment={"GREETING": "hi"})

    greeting, cwd = output.splitlines()
    assert greeting == "hi"
    assert cwd == str(tmp_path.resolve())


def test_non_zero_exit_raises_shell_error(shell):
    with pytest.raises(ShellError) as exc_info:
        shell.run_shell_command("echo broken >&2; exit 3")

    error = exc_info.value
    assert isinstance(error, ExternalToolError)
    assert error.exit_code == 3
    assert error.output == "broken"
    assert "exit code 3" in error.message


def test_timeout_raises_shell_error(shell):
    with pytest.raises(ShellError, match="timed out"):
        shell.run_shell_command("sleep 5", timeout=0.2)


def test_shell_command_step_sees_context_as_environment(shell, tmp_path):
    plan = normalize_plan("p", {
        "id": "echo $BUILD_ID-$REPO_REFERENCE",
        "extra": {"command": "echo $TARGET", "environment": {"TARGET": "prod"}},
        "where": "pwd",
    }, PlanKind.BUILD)
    runner = PlanRunner(Collaborators(shell=shell))

    result = runner.run_plan(plan, [], {
        "plan_path": str(tmp_path),
        "repo_reference": "main",
        "build_id": "b42",
        "save_path": str(tmp_path),
    })

    assert result["outputs"]["id"] == "b42-main"
    assert result["outputs"]["extra"] == "prod"
    assert result["outputs"]["where"] == str(tmp_path.resolve())


def test_failing_shell_step_propagates(shell, tmp_path):
    plan = normalize_plan("p", {"fail": "exit 7"}, PlanKind.BUILD)
    runner = PlanRunner(Collaborators(shell=shell))

    with pytest.raises(ShellError) as exc_info:
        runner.run_plan(plan, [], {
            "plan_path": str(tmp_path),
            "repo_reference": "main",
            "build_id": "b1",
            "save_path": str(tmp_path),
        })

    assert exc_info.value.exit_code == 7


def test_shell_step_runs_in_code_root_or_working_directory(shell, config, app_root, tmp_path):
    (app_root / "bin").mkdir()
    (tmp_path / "sub").mkdir()
    plan = normalize_plan("p", {
        "root": {"command": "pwd", "run_in_code_root": True},
        "bin": {"command": "pwd", "run_in_code_root": True, "working_directory": "bin"},
        "sub": {"command": "pwd", "working_directory": "sub"},
    }, PlanKind.BUILD)
    runner = PlanRunner(Collaborators(shell=shell, application_config=config))

    result = runner.run_plan(plan, [], {
        "plan_path": str(tmp_path),
        "repo_reference": "main",
        "build_id": "b1",
        "save_path": str(tmp_path),
    })

    assert result["outputs"]["root"] == str(app_root.resolve())
    assert result["outputs"]["bin"] == str((app_root / "bin").resolve())
    assert result["outputs"]["sub"] == str((tmp_path / "sub").resolve())


def test_run_in_code_root_needs_application_config(shell, tmp_path):
    plan = normalize_plan("p", {"root": {"command": "pwd", "run_in_code_root": True}}, PlanKind.BUILD)
    runner = PlanRunner(Collaborators(shell=shell))

    with pytest.raises(PreconditionError, match="application_config"):
        runner.run_plan(plan, [], {
            "plan_path": str(tmp_path),
            "repo_reference": "main",
            "build_id": "b1",
            "save_path": str(tmp_path),
        })
