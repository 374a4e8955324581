"""
App Orchestration - Configuration Parser

Parses and validates the application YAML configuration.
Applies package defaults and environment overlays, then transforms the
result into a validated ApplicationConfig.
"""

from __future__ import annotations
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging
import os
import yaml
from pydantic import ValidationError

from app_orchestration.errors import ConfigurationError
from app_orchestration.models import (
    ApplicationConfig,
    MaintenanceStrategyType,
    PlanKind,
)

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "APP_ORCHESTRATION_CONFIG"
ENVIRONMENT_ENV = "APP_ORCHESTRATION_ENVIRONMENT"


# =============================================================================
# DEFAULTS
# =============================================================================

DEFAULT_CONFIG: Dict[str, Any] = {
    "default_branch": "master",
    "file_layout": "default",
    "default_database_adapter": "default",
    "default_database_importexport_adapter": "default",
    "default_filesystem": "local",
    "databases": {},
    "database_adapters": {
        "default": {"type": "mysql"},
    },
    "filesystems": {},
    "build": {
        "default_plan": "default",
        "plans": {},
    },
    "snapshot": {
        "default_plan": "default",
        "plans": {},
        "assets": {},
        "asset_groups": {
            "cache": ["cache/*", "tmp/*"],
        },
        "database_table_groups": {
            "sessions": ["sessions"],
        },
    },
    "maintenance": {
        "strategy": "default",
    },
}

# Plans shipped with the package; a configured plan with the same name replaces them
DEFAULT_PLANS: Dict[str, Dict[str, Any]] = {
    PlanKind.BUILD.value: {
        "default": {
            "steps": {
                "clone_repo": "clone_repo",
                "package_build": "package_build",
                "save_build": "save_build",
            },
        },
    },
    PlanKind.SNAPSHOT.value: {
        "default": {
            "clean_steps": {
                "delete_existing_snapshot": "delete_existing_snapshot",
            },
            "steps": {
                "upload_databases": {
                    "type": "upload_databases",
                    "conditions": ["databases"],
                },
                "sync_assets": {
                    "type": "sync_assets",
                    "conditions": ["assets"],
                },
            },
        },
    },
}


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge two mappings.

    Nested mappings are merged key by key; any other value in override
    replaces the one in base. Neither input is modified.

    Args:
        base: Mapping providing defaults
        override: Mapping whose values win

    Returns:
        New merged mapping
    """
    merged = deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


# =============================================================================
# PARSER
# =============================================================================

class ConfigParser:
    """
    Parser for application configuration files.

    Responsibilities:
    - Parse YAML content
    - Apply defaults and the selected environment overlay
    - Validate structure and required fields
    - Transform to domain model (ApplicationConfig)
    - Check that every configured plan normalizes
    """

    REQUIRED_KEYS = ["app_name", "app_root", "repo_url"]

    MAPPING_SECTIONS = [
        "databases",
        "database_adapters",
        "filesystems",
        "build",
        "snapshot",
        "maintenance",
        "environments",
    ]

    def __init__(self, environment: Optional[str] = None):
        """
        Initialize parser.

        Args:
            environment: Environment overlay to apply, defaults to $APP_ORCHESTRATION_ENVIRONMENT
        """
        self.environment = environment or os.environ.get(ENVIRONMENT_ENV)
        self.logger = logging.getLogger(__name__)

    def parse(self, yaml_content: str) -> ApplicationConfig:
        """
        Parse YAML content into ApplicationConfig.

        Args:
            yaml_content: YAML configuration string

        Returns:
            Validated ApplicationConfig

        Raises:
            ConfigurationError: If parsing or validation fails
        """
        raw_config = self._parse_yaml(yaml_content)
        return self.parse_dict(raw_config)

    def parse_dict(self, raw_config: Dict[str, Any]) -> ApplicationConfig:
        """Validate an already loaded configuration mapping."""
        # Step 1: Validate structure
        validation_errors = self._validate_structure(raw_config)
        if validation_errors:
            raise ConfigurationError(
                "Configuration validation failed",
                errors=validation_errors,
            )

        # Step 2: Defaults and environment overlay
        merged = self._apply_environment(raw_config)
        merged = self._apply_defaults(merged)

        # Step 3: Transform to domain model
        try:
            config = ApplicationConfig(**merged)
        except ValidationError as e:
            errors = [f"{err['loc']}: {err['msg']}" for err in e.errors()]
            raise ConfigurationError("Model validation failed", errors=errors)

        # Step 4: Semantic validation
        semantic_errors = self._validate_semantics(config)
        if semantic_errors:
            raise ConfigurationError(
                "Semantic validation failed",
                errors=semantic_errors,
            )

        self.logger.info(f"Successfully parsed configuration for application: {config.app_name}")
        return config

    def parse_file(self, file_path: str) -> ApplicationConfig:
        """
        Parse configuration from file.

        Args:
            file_path: Path to YAML file

        Returns:
            Validated ApplicationConfig
        """
        path = Path(file_path)
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {file_path}")

        with open(path, "r", encoding="utf-8") as f:
            content = f.read()

        return self.parse(content)

    def validate_only(self, yaml_content: str) -> List[str]:
        """
        Validate configuration without building the model.

        Args:
            yaml_content: YAML configuration string

        Returns:
            List of validation errors (empty if valid)
        """
        try:
            self.parse(yaml_content)
            return []
        except ConfigurationError as e:
            return e.errors or [e.message]

    def _parse_yaml(self, yaml_content: str) -> Dict[str, Any]:
        """
        Parse YAML string to dictionary.

        Raises:
            ConfigurationError: If YAML syntax is invalid
        """
        try:
            config = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"YAML syntax error: {str(e)}")
        if config is None:
            raise ConfigurationError("Empty configuration")
        if not isinstance(config, dict):
            raise ConfigurationError("Configuration must be a YAML mapping/dictionary")
        return config

    def _validate_structure(self, config: Dict[str, Any]) -> List[str]:
        """
        Validate configuration structure.

        Returns:
            List of validation errors
        """
        errors = []

        environments = config.get("environments") or {}
        overlay = environments.get(self.environment, {}) if isinstance(environments, dict) else {}

        for key in self.REQUIRED_KEYS:
            if key not in config and key not in (overlay or {}):
                errors.append(f"Missing required key: '{key}'")

        for section in self.MAPPING_SECTIONS:
            if section in config and not isinstance(config[section], dict):
                errors.append(f"Section '{section}' must be a mapping")

        if self.environment and isinstance(environments, dict):
            if self.environment not in environments:
                errors.append(
                    f"Unknown environment: '{self.environment}'. "
                    f"Available: {sorted(environments.keys())}"
                )
            elif not isinstance(environments[self.environment], dict):
                errors.append(f"Environment '{self.environment}' must be a mapping")

        return errors

    def _apply_environment(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Overlay the selected environment and drop the environments section."""
        base = {k: v for k, v in config.items() if k != "environments"}
        if not self.environment:
            return base

        overlay = (config.get("environments") or {}).get(self.environment) or {}
        self.logger.debug(f"Applying environment overlay: {self.environment}")
        return deep_merge(base, overlay)

    def _apply_defaults(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Merge package defaults underneath the configuration."""
        merged = deep_merge(DEFAULT_CONFIG, config)
        for kind, plans in DEFAULT_PLANS.items():
            configured = merged[kind].setdefault("plans", {})
            for name, plan in plans.items():
                configured.setdefault(name, deepcopy(plan))
        return merged

    def _validate_semantics(self, config: ApplicationConfig) -> List[str]:
        """
        Validate cross-references and plan definitions.

        Returns:
            List of semantic errors
        """
        # Imported here: the plan normalizer resolves step classes that depend on this module's models
        from app_orchestration.engine.plan import PlanNormalizer

        errors = []

        if config.build.default_plan not in config.build.plans:
            errors.append(f"build.default_plan '{config.build.default_plan}' is not defined in build.plans")
        if config.snapshot.default_plan not in config.snapshot.plans:
            errors.append(f"snapshot.default_plan '{config.snapshot.default_plan}' is not defined in snapshot.plans")

        adapters = set(config.database_adapters.keys())
        for db_name in config.databases:
            for adapter_name in (
                config.database_adapter_name(db_name),
                config.importexport_adapter_name(db_name),
            ):
                if adapter_name not in adapters:
                    errors.append(f"Database '{db_name}' references unknown adapter '{adapter_name}'")

        if config.default_filesystem != "local" and config.default_filesystem not in config.filesystems:
            errors.append(f"default_filesystem '{config.default_filesystem}' is not defined in filesystems")

        if (
            config.maintenance.strategy == MaintenanceStrategyType.FLAG_FILE
            and not config.maintenance.targets
        ):
            errors.append("maintenance.targets must list at least one directory for the flag_file strategy")

        normalizer = PlanNormalizer()
        for kind, section in ((PlanKind.BUILD, config.build), (PlanKind.SNAPSHOT, config.snapshot)):
            for name, raw_plan in section.plans.items():
                try:
                    normalizer.normalize(name, raw_plan, kind)
                except ConfigurationError as e:
                    errors.extend(f"{kind.value}.plans.{name}: {err}" for err in (e.errors or [e.message]))

        return errors


def load_config(file_path: Optional[str] = None, environment: Optional[str] = None) -> ApplicationConfig:
    """
    Load configuration from file.

    Args:
        file_path: YAML file, defaults to $APP_ORCHESTRATION_CONFIG or ./app-orchestration.yaml
        environment: Environment overlay name

    Returns:
        Validated ApplicationConfig
    """
    path = file_path or os.environ.get(CONFIG_PATH_ENV, "app-orchestration.yaml")
    return ConfigParser(environment=environment).parse_file(path)
