"""
App Orchestration - Plan Runner

Executes normalized plans step by step.
Handles condition gating, capability injection and result merging; stops
at the first failing step.
"""

from __future__ import annotations
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
import logging

from pydantic import ValidationError

from app_orchestration.engine.injector import CapabilityInjector
from app_orchestration.errors import ConfigurationError
from app_orchestration.models import Condition, NormalizedPlan, StepSpec
from app_orchestration.steps.base import Collaborators, Step, StepRegistry, context_model

logger = logging.getLogger(__name__)

# Returns a reference to an existing artifact for the given context, or None
FindExisting = Callable[[Dict[str, Any]], Optional[str]]


class PlanRunner:
    """
    Runs plans sequentially.

    Responsibilities:
    - Short-circuit when the plan's artifact already exists
    - Run preflight, clean (on replace) and main steps in order
    - Skip steps whose condition gate does not intersect the active conditions
    - Inject collaborators and thread the context through every step

    Error Handling:
    - The first exception stops the run and is re-raised unchanged
    - The runner never cleans up; facades own cleanup
    """

    def __init__(
        self,
        collaborators: Optional[Collaborators] = None,
        injector: Optional[CapabilityInjector] = None,
    ):
        """
        Initialize runner.

        Args:
            collaborators: Shared collaborators handed to steps
            injector: Injector to use, built from collaborators by default
        """
        self.injector = injector or CapabilityInjector(collaborators)
        self.logger = logging.getLogger(__name__)

    def run_plan(
        self,
        plan: NormalizedPlan,
        conditions: Iterable[Condition],
        context: Dict[str, Any],
        replace_if_exists: bool = False,
        cacheable: bool = True,
        find_existing: Optional[FindExisting] = None,
    ) -> Dict[str, Any]:
        """
        Run a plan.

        Args:
            plan: Normalized plan
            conditions: Active conditions
            context: Initial context parameters
            replace_if_exists: Run clean steps and never reuse an existing artifact
            cacheable: Allow reusing an existing artifact
            find_existing: Probe for an existing artifact

        Returns:
            Final context, with "reused" and the step "outputs"
        """
        active = frozenset(Condition(c) for c in conditions)
        model = context_model(plan.kind)
        current: Dict[str, Any] = dict(context)

        # Fails before any step when required parameters are missing
        self._build_context(model, current)

        if cacheable and not replace_if_exists and find_existing is not None:
            existing = find_existing(current)
            if existing:
                self.logger.info(f"Plan: {plan.name} - reusing existing artifact {existing}")
                current.update({"artifact": existing, "reused": True, "outputs": {}})
                return current

        self.logger.info(f"Plan: {plan.name} ({plan.kind.value})")

        outputs: Dict[str, str] = {}
        for section, spec in self._scheduled(plan, replace_if_exists):
            if spec.gate and not (spec.gate & active):
                self.logger.debug(
                    f"Step: {spec.name} - skipped because run condition(s) "
                    f"{sorted(c.value for c in spec.gate)} not met."
                )
                continue

            self.logger.info(f"Step: {spec.name}")
            if spec.comment:
                self.logger.debug(spec.comment)

            step = self.injector.prepare(self._instantiate(spec))
            try:
                result = step.run(self._build_context(model, current))
            except Exception as e:
                self.logger.error(f"Step: {spec.name} failed in {section}: {e}")
                raise

            if isinstance(result, dict):
                current.update(result)
            elif isinstance(result, str) and result:
                self.logger.debug(result.strip())
                outputs[spec.name] = result.strip()

        current["reused"] = False
        current["outputs"] = outputs
        return current

    def _scheduled(self, plan: NormalizedPlan, replace_if_exists: bool) -> List[Tuple[str, StepSpec]]:
        sections = [("preflight_steps", plan.preflight_steps)]
        if replace_if_exists:
            sections.append(("clean_steps", plan.clean_steps))
        sections.append(("steps", plan.steps))
        return [(name, spec) for name, specs in sections for spec in specs]

    def _instantiate(self, spec: StepSpec) -> Step:
        step_class = StepRegistry.resolve(spec.type)
        if step_class is None:
            raise ConfigurationError(f"Cannot resolve step type '{spec.type}' for step '{spec.name}'")
        return step_class(
            options=spec.options,
            command=spec.command,
            environment=spec.environment,
            run_in_code_root=spec.run_in_code_root,
            working_directory=spec.working_directory,
        )

    def _build_context(self, model, values: Dict[str, Any]):
        try:
            return model(**values)
        except ValidationError as e:
            errors = [f"{err['loc']}: {err['msg']}" for err in e.errors()]
            raise ConfigurationError("Invalid run context", errors=errors)
