import pytest

from app_orchestration.config import ConfigParser
from app_orchestration.errors import ConfigurationError, StateError
from app_orchestration.maintenance import (
    ApplicationMaintenanceManager,
    DefaultMaintenanceStrategy,
    FlagFileMaintenanceStrategy,
    NoAppMaintenanceStrategy,
    build_maintenance_strategy,
)
from app_orchestration.storage import MountManager


@pytest.fixture
def mount():
    return MountManager()


@pytest.fixture
def targets(tmp_path):
    first = tmp_path / "web1"
    second = tmp_path / "web2"
    first.mkdir()
    second.mkdir()
    return [first, second]


def test_flag_file_enabled_only_when_every_target_has_flag(mount, targets):
    strategy = FlagFileMaintenanceStrategy(mount, [str(t) for t in targets])

    (targets[0] / "maintenance.flag").write_text("")
    assert strategy.is_enabled() is False

    strategy.enable()
    assert strategy.is_enabled() is True
    assert all((t / "maintenance.flag").exists() for t in targets)

    strategy.disable()
    assert strategy.is_enabled() is False
    assert not any((t / "maintenance.flag").exists() for t in targets)


def test_flag_file_disable_tolerates_missing_flags(mount, targets):
    strategy = FlagFileMaintenanceStrategy(mount, [str(t) for t in targets], flag_file="down")
    (targets[1] / "down").write_text("")

    strategy.disable()

    assert not (targets[1] / "down").exists()


def test_flag_file_needs_a_target(mount):
    with pytest.raises(ConfigurationError):
        FlagFileMaintenanceStrategy(mount, [])


def test_default_strategy_is_a_no_op():
    manager = ApplicationMaintenanceManager(DefaultMaintenanceStrategy())

    manager.enable()
    assert manager.is_enabled() is False
    manager.disable()


@pytest.mark.parametrize("operation", ["enable", "disable", "is_enabled"])
def test_no_app_strategy_rejects_every_operation(operation):
    manager = ApplicationMaintenanceManager(NoAppMaintenanceStrategy())

    with pytest.raises(StateError, match="No maintenance strategy set."):
        getattr(manager, operation)()


def test_manager_defaults_to_no_op_strategy():
    assert isinstance(ApplicationMaintenanceManager().strategy, DefaultMaintenanceStrategy)


def test_strategy_built_from_configuration(raw_config, app_root, mount, tmp_path):
    absolute = tmp_path / "edge"
    raw_config["maintenance"] = {"strategy": "flag_file", "targets": ["pub", str(absolute)]}
    config = ConfigParser().parse_dict(raw_config)

    strategy = build_maintenance_strategy(config, mount)
    strategy.enable()

    assert (app_root / "pub" / "maintenance.flag").exists()
    assert (absolute / "maintenance.flag").exists()


def test_strategy_none_builds_no_app_strategy(raw_config, mount):
    raw_config["maintenance"] = {"strategy": "none"}
    config = ConfigParser().parse_dict(raw_config)

    assert isinstance(build_maintenance_strategy(config, mount), NoAppMaintenanceStrategy)
