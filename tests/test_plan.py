from types import SimpleNamespace

import pytest

from app_orchestration.config import ConfigParser
from app_orchestration.engine.plan import PlanNormalizer
from app_orchestration.errors import ConfigurationError
from app_orchestration.models import Condition, NormalizedPlan, PlanKind

from conftest import record


@pytest.fixture
def normalizer():
    return PlanNormalizer()


# ---------------------------------------------------------------------------
# Shorthand forms
# ---------------------------------------------------------------------------

def test_string_resolving_to_a_step_becomes_a_typed_step(normalizer):
    plan = normalizer.normalize("p", {"clone": "test_record"}, PlanKind.BUILD)

    assert isinstance(plan, NormalizedPlan)
    assert plan.steps[0].name == "clone"
    assert plan.steps[0].type == "test_record"
    assert plan.steps[0].command is None


def test_other_strings_become_shell_commands(normalizer):
    plan = normalizer.normalize("p", {"hello": "echo hello"}, PlanKind.BUILD)

    step = plan.steps[0]
    assert step.type == "shell_command"
    assert step.command == "echo hello"


def test_mapping_with_command_only_is_a_shell_step(normalizer):
    plan = normalizer.normalize(
        "p",
        {"warm": {"command": "bin/warm", "environment": {"LEVEL": 2}, "comment": "warm caches"}},
        PlanKind.BUILD,
    )

    step = plan.steps[0]
    assert step.type == "shell_command"
    assert step.environment == {"LEVEL": "2"}
    assert step.comment == "warm caches"


def test_null_spec_references_step_by_key(normalizer):
    plan = normalizer.normalize("p", {"test_record": None}, PlanKind.SNAPSHOT)
    assert plan.steps[0].type == "test_record"


def test_list_entries_are_named_after_type_or_command(normalizer):
    plan = normalizer.normalize("p", {"steps": ["test_record", "echo hi"]}, PlanKind.BUILD)
    assert [s.name for s in plan.steps] == ["test_record", "echo hi"]


def test_order_and_sections_are_preserved(normalizer):
    raw = {
        "preflight_steps": {"check": record("check")},
        "clean_steps": {"wipe": record("wipe")},
        "steps": {
            "c": record("c"),
            "a": record("a"),
            "b": record("b", conditions=["assets", "databases"]),
        },
    }
    plan = normalizer.normalize("p", raw, PlanKind.SNAPSHOT)

    assert [s.name for s in plan.preflight_steps] == ["check"]
    assert [s.name for s in plan.clean_steps] == ["wipe"]
    assert [s.name for s in plan.steps] == ["c", "a", "b"]
    assert plan.steps[2].gate == frozenset({Condition.ASSETS, Condition.DATABASES})


# ---------------------------------------------------------------------------
# Idempotence
# ---------------------------------------------------------------------------

def test_normalize_is_idempotent(normalizer):
    raw = {
        "preflight_steps": {"check": "echo ok"},
        "steps": {
            "first": record("first", conditions=["databases"]),
            "second": {"command": "make", "environment": {"A": "1"}},
        },
    }
    plan = normalizer.normalize("p", raw, PlanKind.BUILD)

    assert normalizer.normalize("p", plan, PlanKind.BUILD) == plan
    assert normalizer.normalize("p", plan.model_dump(), PlanKind.BUILD) == plan
    assert normalizer.normalize("p", plan.model_dump(mode="json"), PlanKind.BUILD) == plan


# ---------------------------------------------------------------------------
# Rejections
# ---------------------------------------------------------------------------

def test_step_not_implementing_interface_is_rejected(normalizer):
    with pytest.raises(ConfigurationError) as exc_info:
        normalizer.normalize("p", {"bad": "test_snapshot_only"}, PlanKind.BUILD)

    assert "does not implement BuildStep" in str(exc_info.value)


def test_import_path_to_non_step_class_is_rejected(normalizer):
    with pytest.raises(ConfigurationError) as exc_info:
        normalizer.normalize("p", {"bad": {"type": "collections.OrderedDict"}}, PlanKind.BUILD)

    assert "does not implement" in str(exc_info.value)


def test_import_path_to_step_class_resolves(normalizer):
    plan = normalizer.normalize(
        "p",
        {"clone": {"type": "app_orchestration.steps.build:CloneRepoStep"}},
        PlanKind.BUILD,
    )
    assert plan.steps[0].type == "app_orchestration.steps.build:CloneRepoStep"


def test_colon_import_path_shorthand_resolves(normalizer):
    plan = normalizer.normalize("p", {"steps": ["app_orchestration.steps.build:CloneRepoStep"]}, PlanKind.BUILD)

    assert plan.steps[0].type == "app_orchestration.steps.build:CloneRepoStep"


def test_dotted_shorthand_is_a_command_and_imports_nothing(normalizer, monkeypatch):
    def no_imports(name, package=None):
        raise AssertionError(f"unexpected import of {name}")

    monkeypatch.setattr("app_orchestration.steps.base.importlib", SimpleNamespace(import_module=no_imports))

    plan = normalizer.normalize("p", {"run": "deploy.sh", "zen": "this.sh"}, PlanKind.BUILD)

    assert [s.type for s in plan.steps] == ["shell_command", "shell_command"]
    assert [s.command for s in plan.steps] == ["deploy.sh", "this.sh"]


def test_list_plan_may_repeat_a_command(normalizer):
    plan = normalizer.normalize(
        "p",
        {"steps": ["bin/flush-cache", "make", "bin/flush-cache"]},
        PlanKind.BUILD,
    )

    assert [s.command for s in plan.steps] == ["bin/flush-cache", "make", "bin/flush-cache"]
    assert len({s.name for s in plan.steps}) == 3
    assert normalizer.normalize("p", plan, PlanKind.BUILD) == plan


def test_explicit_duplicate_names_in_a_list_are_rejected(normalizer):
    with pytest.raises(ConfigurationError, match="duplicate step name"):
        normalizer.normalize(
            "p",
            {"steps": [{"name": "x", "command": "a"}, {"name": "x", "command": "b"}]},
            PlanKind.BUILD,
        )


def test_working_directory_keys_are_accepted(normalizer):
    plan = normalizer.normalize(
        "p",
        {"flush": {"command": "bin/console cache:flush", "run_in_code_root": True, "working_directory": "app"}},
        PlanKind.SNAPSHOT,
    )

    assert plan.steps[0].run_in_code_root is True
    assert plan.steps[0].working_directory == "app"


def test_unresolvable_type_is_rejected(normalizer):
    with pytest.raises(ConfigurationError) as exc_info:
        normalizer.normalize("p", {"bad": {"type": "no_such_step"}}, PlanKind.BUILD)

    assert "cannot resolve step type 'no_such_step'" in str(exc_info.value)


def test_unknown_condition_is_rejected(normalizer):
    with pytest.raises(ConfigurationError) as exc_info:
        normalizer.normalize("p", {"s": record("s", conditions=["weather"])}, PlanKind.BUILD)

    assert "unknown condition 'weather'" in str(exc_info.value)


def test_nested_step_groups_are_rejected(normalizer):
    raw = {"group": {"steps": {"a": "test_record", "b": "test_record"}}}
    with pytest.raises(ConfigurationError) as exc_info:
        normalizer.normalize("p", {"steps": raw}, PlanKind.BUILD)

    assert "nested step groups" in str(exc_info.value)


def test_step_without_reference_is_rejected(normalizer):
    with pytest.raises(ConfigurationError):
        normalizer.normalize("p", {"empty": {"options": {"a": 1}}}, PlanKind.BUILD)


@pytest.mark.parametrize("raw", [None, {}, [], "test_record"])
def test_empty_or_non_mapping_plan_is_rejected(normalizer, raw):
    with pytest.raises(ConfigurationError):
        normalizer.normalize("p", raw, PlanKind.BUILD)


def test_every_problem_is_reported(normalizer):
    raw = {
        "one": {"type": "no_such_step"},
        "two": record("two", conditions=["weather"]),
        "three": 42,
    }
    with pytest.raises(ConfigurationError) as exc_info:
        normalizer.normalize("p", raw, PlanKind.BUILD)

    assert len(exc_info.value.errors) == 3


def test_get_plan_lists_available_plans(normalizer):
    with pytest.raises(ConfigurationError) as exc_info:
        normalizer.get_plan({"default": {"a": "test_record"}}, "missing", PlanKind.BUILD)

    assert "Available: ['default']" in exc_info.value.message


def test_configuration_with_bad_plan_fails_to_load(raw_config):
    raw_config["build"]["plans"]["bad"] = {"x": "test_snapshot_only"}

    with pytest.raises(ConfigurationError) as exc_info:
        ConfigParser().parse_dict(raw_config)

    assert any("build.plans.bad" in err for err in exc_info.value.errors)


def test_bad_plan_never_reaches_the_runner(config, orchestrator, calls, tmp_path):
    config.build.plans["bad"] = {"ok": record("ok"), "bad": "test_snapshot_only"}

    with pytest.raises(ConfigurationError):
        orchestrator.builder.build(plan_name="bad")

    assert calls == []
    assert not (tmp_path / "build").exists()
