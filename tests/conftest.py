"""Shared fixtures and test steps."""

from pathlib import Path
from typing import Any, Dict, List

import pytest

from app_orchestration.config import ConfigParser
from app_orchestration.orchestrator import Orchestrator
from app_orchestration.steps.base import BuildStep, Capability, SnapshotStep, StepRegistry

# Labels of every test step invocation, in order
CALLS: List[str] = []

# Context seen by every test_capture invocation
CAPTURED: List[Dict[str, Any]] = []


class RecordingStep(BuildStep, SnapshotStep):
    """Records its label and returns the "result" option."""

    STEP_NAME = "test_record"
    CAPABILITIES = frozenset({Capability.LOGGER})

    def run(self, context):
        CALLS.append(self.options.get("label", self.STEP_NAME))
        return self.options.get("result")


class CaptureContextStep(BuildStep, SnapshotStep):
    STEP_NAME = "test_capture"

    def run(self, context):
        CALLS.append("capture")
        CAPTURED.append(context.model_dump())


class WriteFileStep(BuildStep, SnapshotStep):
    """Writes a file into the plan path."""

    STEP_NAME = "test_write_file"

    def run(self, context):
        CALLS.append("write_file")
        Path(context.plan_path, self.options.get("filename", "out.txt")).write_text("data")


class FailingStep(BuildStep, SnapshotStep):
    STEP_NAME = "test_fail"

    def run(self, context):
        CALLS.append("fail")
        raise RuntimeError(self.options.get("message", "step failed"))


class SnapshotOnlyStep(SnapshotStep):
    STEP_NAME = "test_snapshot_only"

    def run(self, context):
        CALLS.append("snapshot_only")


class NeedsShellStep(BuildStep):
    STEP_NAME = "test_needs_shell"
    CAPABILITIES = frozenset({Capability.SHELL})

    def run(self, context):
        return self.require(Capability.SHELL).run_shell_command("true")


for _step in (RecordingStep, CaptureContextStep, WriteFileStep, FailingStep, SnapshotOnlyStep, NeedsShellStep):
    StepRegistry.register(_step)


def record(label: str, **extra: Any) -> Dict[str, Any]:
    """Step spec for a recording step."""
    options = {"label": label}
    if "result" in extra:
        options["result"] = extra.pop("result")
    spec = {"type": "test_record", "options": options}
    spec.update(extra)
    return spec


@pytest.fixture(autouse=True)
def reset_calls():
    CALLS.clear()
    CAPTURED.clear()
    yield
    CALLS.clear()
    CAPTURED.clear()


@pytest.fixture(autouse=True)
def no_environment(monkeypatch):
    monkeypatch.delenv("APP_ORCHESTRATION_ENVIRONMENT", raising=False)


@pytest.fixture
def calls() -> List[str]:
    return CALLS


@pytest.fixture
def app_root(tmp_path) -> Path:
    root = tmp_path / "app"
    root.mkdir()
    return root


@pytest.fixture
def snapshot_dir(tmp_path) -> Path:
    return tmp_path / "snapshots"


@pytest.fixture
def raw_config(tmp_path, app_root) -> Dict[str, Any]:
    return {
        "app_name": "shop",
        "app_root": str(app_root) + "/",
        "repo_url": "git@example.com:acme/shop.git",
        "database_adapters": {
            "default": {
                "type": "fake",
                "databases": ["shop", "shop_feature_x", "shop_main"],
            },
        },
        "databases": {
            "shop": {"excludes": ["@sessions", "log"]},
        },
        "build": {
            "working_path": str(tmp_path / "build"),
            "save_path": str(tmp_path / "builds"),
            "plans": {
                "record": {
                    "steps": {
                        "first": record("first", result="first output"),
                        "second": record("second"),
                    },
                },
                "failing": {
                    "steps": {
                        "write": "test_write_file",
                        "boom": {"type": "test_fail", "options": {"message": "boom"}},
                        "never": record("never"),
                    },
                },
                "save_tree": {
                    "steps": {
                        "write": "test_write_file",
                        "save": "save_build",
                    },
                },
            },
        },
        "snapshot": {
            "working_path": str(tmp_path / "snapshot-work"),
            "assets": {
                "media": {"location": "shared", "excludes": ["@cache"]},
            },
            "plans": {
                "recording": {
                    "clean_steps": {"clean": record("clean")},
                    "steps": {
                        "upload": record("upload", conditions=["databases"]),
                        "sync": record("sync", conditions=["assets"]),
                    },
                },
                "failing": {
                    "steps": {
                        "write": "test_write_file",
                        "boom": "test_fail",
                    },
                },
            },
        },
    }


@pytest.fixture
def config(raw_config):
    return ConfigParser().parse_dict(raw_config)


@pytest.fixture
def orchestrator(config):
    return Orchestrator(config)
