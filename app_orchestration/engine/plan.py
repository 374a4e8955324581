"""
App Orchestration - Plan Normalizer

Turns raw plan definitions from configuration into canonical, typed plans.
Validation is pure: no step is instantiated or executed here.

Accepted raw forms (per section):

    steps:
      clone_repo: clone_repo                 # registered step name
      notify: "curl -s https://example.com"  # anything else is a shell command
      package_build:
        type: package_build
        options: {excludes: [tests]}
      warm_cache:
        command: "bin/warm-cache"
        conditions: [assets]
        comment: Fill caches before packaging
        environment: {CACHE_DIR: var/cache}
      flush_cache:
        command: "bin/console cache:flush"
        run_in_code_root: true
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple, Type
import logging

from pydantic import ValidationError

from app_orchestration.errors import ConfigurationError
from app_orchestration.models import Condition, NormalizedPlan, PlanKind, StepSpec
from app_orchestration.steps.base import (
    IMPORT_PATH_PATTERN,
    ShellCommandStep,
    Step,
    StepRegistry,
    step_interface,
)

logger = logging.getLogger(__name__)


class PlanNormalizer:
    """
    Validator and normalizer for plan definitions.

    Responsibilities:
    - Accept the shorthand forms users write in YAML
    - Resolve every step reference to a class implementing the plan kind's interface
    - Preserve step order within each section
    - Report every problem found in one ConfigurationError
    """

    SECTIONS = ["preflight_steps", "clean_steps", "steps"]

    # Keys allowed in a step mapping
    STEP_KEYS = {
        "name", "type", "command", "options", "conditions", "comment", "environment",
        "run_in_code_root", "working_directory",
    }

    # Keys a dumped NormalizedPlan carries besides its sections
    PLAN_KEYS = {"name", "kind"}

    def __init__(self):
        """Initialize normalizer."""
        self.logger = logging.getLogger(__name__)

    def normalize(self, name: str, raw_plan: Any, kind: PlanKind) -> NormalizedPlan:
        """
        Normalize a raw plan.

        Args:
            name: Plan name
            raw_plan: Ordered mapping of step name to step spec, a sectioned
                mapping, or an already normalized plan (or its model_dump())
            kind: Plan kind selecting the step interface

        Returns:
            Canonical NormalizedPlan

        Raises:
            ConfigurationError: If the plan is malformed
        """
        kind = PlanKind(kind)

        if isinstance(raw_plan, NormalizedPlan):
            raw_plan = raw_plan.model_dump(mode="json")

        if not raw_plan or not isinstance(raw_plan, dict):
            raise ConfigurationError(f"Plan '{name}' must be a non-empty mapping of steps")

        errors: List[str] = []
        sections = self._split_sections(name, raw_plan, kind, errors)

        normalized: Dict[str, List[StepSpec]] = {}
        for section in self.SECTIONS:
            normalized[section] = self._normalize_section(section, sections.get(section), kind, errors)

        if not normalized["steps"] and not errors:
            errors.append("Plan has no steps")

        if errors:
            raise ConfigurationError(f"Invalid {kind.value} plan '{name}'", errors=errors)

        plan = NormalizedPlan(name=name, kind=kind, **normalized)
        self.logger.debug(f"Normalized {kind.value} plan '{name}' with {plan.step_count} step(s)")
        return plan

    def get_plan(self, plans: Dict[str, Any], name: str, kind: PlanKind) -> NormalizedPlan:
        """
        Look up a configured plan by name and normalize it.

        Raises:
            ConfigurationError: If no plan with that name is configured
        """
        if name not in plans:
            raise ConfigurationError(
                f"Unknown {PlanKind(kind).value} plan: {name}. "
                f"Available: {sorted(plans.keys())}"
            )
        return self.normalize(name, plans[name], kind)

    # =========================================================================
    # SECTIONS
    # =========================================================================

    def _split_sections(
        self,
        name: str,
        raw_plan: Dict[str, Any],
        kind: PlanKind,
        errors: List[str],
    ) -> Dict[str, Any]:
        if not any(section in raw_plan for section in self.SECTIONS):
            return {"steps": raw_plan}

        raw_kind = raw_plan.get("kind")
        if raw_kind is not None and raw_kind != kind.value:
            errors.append(f"Plan kind '{raw_kind}' does not match expected kind '{kind.value}'")

        for key in raw_plan:
            if key not in self.SECTIONS and key not in self.PLAN_KEYS:
                errors.append(f"Unknown plan section: '{key}'")

        return {section: raw_plan.get(section) for section in self.SECTIONS}

    def _section_items(self, section: str, raw_section: Any, errors: List[str]) -> List[Tuple[Any, Any]]:
        if raw_section is None:
            return []
        if isinstance(raw_section, dict):
            return list(raw_section.items())
        if isinstance(raw_section, list):
            items = []
            for entry in raw_section:
                entry_name = entry.get("name") if isinstance(entry, dict) else None
                items.append((entry_name, entry))
            return items
        errors.append(f"Section '{section}' must be a mapping or a list of steps")
        return []

    def _normalize_section(
        self,
        section: str,
        raw_section: Any,
        kind: PlanKind,
        errors: List[str],
    ) -> List[StepSpec]:
        specs: List[StepSpec] = []
        seen = set()
        for index, (step_name, raw_spec) in enumerate(self._section_items(section, raw_section, errors)):
            spec = self._normalize_step(section, step_name, raw_spec, kind, errors)
            if spec is None:
                continue
            if spec.name in seen:
                if self._is_named(step_name):
                    errors.append(f"{section}.{spec.name}: duplicate step name")
                    continue
                # Derived names of repeated list entries get their position appended
                spec = spec.model_copy(update={"name": f"{spec.name}#{index}"})
            seen.add(spec.name)
            specs.append(spec)
        return specs

    # =========================================================================
    # STEPS
    # =========================================================================

    def _normalize_step(
        self,
        section: str,
        step_name: Any,
        raw_spec: Any,
        kind: PlanKind,
        errors: List[str],
    ) -> Optional[StepSpec]:
        label = f"{section}.{step_name}" if self._is_named(step_name) else f"{section}[]"
        step_errors: List[str] = []

        # "clone_repo: ~" references the step by its key
        if raw_spec is None and self._is_named(step_name):
            raw_spec = str(step_name)

        if isinstance(raw_spec, str):
            fields = self._from_string(raw_spec)
        elif isinstance(raw_spec, dict):
            fields = self._from_mapping(raw_spec, step_errors)
        else:
            errors.append(f"{label}: step must be a string or a mapping")
            return None

        if fields is None:
            errors.extend(f"{label}: {err}" for err in step_errors)
            return None

        step_class = self._resolve(fields["type"], kind, step_errors)
        fields["conditions"] = self._conditions(fields.get("conditions"), step_errors)

        for key in ("options", "environment"):
            if fields.get(key) is None:
                fields[key] = {}
            elif not isinstance(fields[key], dict):
                step_errors.append(f"'{key}' must be a mapping")
        if isinstance(fields.get("environment"), dict):
            fields["environment"] = {str(k): str(v) for k, v in fields["environment"].items()}

        # Unnamed steps are named after their type, or their command for shell steps
        if self._is_named(step_name):
            fields["name"] = str(step_name)
        elif not fields.get("name"):
            if fields["type"] == ShellCommandStep.STEP_NAME:
                fields["name"] = fields.get("command")
            else:
                fields["name"] = fields["type"]

        if step_errors:
            errors.extend(f"{label}: {err}" for err in step_errors)
            return None

        try:
            spec = StepSpec(**fields)
        except ValidationError as e:
            errors.extend(f"{label}: {err['loc']}: {err['msg']}" for err in e.errors())
            return None

        if step_class is not None:
            errors.extend(f"{label}: {err}" for err in step_class.validate(spec))
        return spec

    @staticmethod
    def _is_named(step_name: Any) -> bool:
        """Numeric and empty keys do not name a step."""
        if step_name is None or isinstance(step_name, (int, float)):
            return False
        return bool(str(step_name).strip())

    def _from_string(self, raw_spec: str) -> Dict[str, Any]:
        # Only registered names and "module:Class" paths are step types; "deploy.sh" stays a command
        if StepRegistry.get(raw_spec) is not None or (":" in raw_spec and IMPORT_PATH_PATTERN.match(raw_spec)):
            return {"type": raw_spec}
        return {"type": ShellCommandStep.STEP_NAME, "command": raw_spec}

    def _from_mapping(self, raw_spec: Dict[str, Any], errors: List[str]) -> Optional[Dict[str, Any]]:
        if "steps" in raw_spec:
            errors.append("nested step groups are not supported; steps run sequentially")
            return None

        unknown = sorted(set(raw_spec) - self.STEP_KEYS)
        if unknown:
            errors.append(f"unknown step keys: {unknown}")
            return None

        fields = dict(raw_spec)
        if not fields.get("type"):
            if not fields.get("command"):
                errors.append("step needs a 'type' or a 'command'")
                return None
            fields["type"] = ShellCommandStep.STEP_NAME
        return fields

    def _resolve(self, reference: Any, kind: PlanKind, errors: List[str]) -> Optional[Type[Step]]:
        if not isinstance(reference, str):
            errors.append(f"step type must be a string, got {type(reference).__name__}")
            return None

        step_class = StepRegistry.resolve(reference)
        if step_class is None:
            errors.append(f"cannot resolve step type '{reference}'")
            return None

        interface = step_interface(kind)
        if not issubclass(step_class, interface):
            errors.append(
                f"step type '{reference}' ({step_class.__name__}) does not implement "
                f"{interface.__name__}"
            )
            return None
        return step_class

    def _conditions(self, raw_conditions: Any, errors: List[str]) -> List[Condition]:
        if raw_conditions is None:
            return []
        if isinstance(raw_conditions, str):
            raw_conditions = [raw_conditions]
        if not isinstance(raw_conditions, (list, tuple, set, frozenset)):
            errors.append("'conditions' must be a list")
            return []

        conditions: List[Condition] = []
        valid = [c.value for c in Condition]
        for raw in raw_conditions:
            value = raw.value if isinstance(raw, Condition) else raw
            if value not in valid:
                errors.append(f"unknown condition '{value}'. Available: {valid}")
            elif Condition(value) not in conditions:
                conditions.append(Condition(value))
        return conditions


def normalize_plan(name: str, raw_plan: Any, kind: PlanKind) -> NormalizedPlan:
    """Normalize a raw plan with a default normalizer."""
    return PlanNormalizer().normalize(name, raw_plan, kind)
