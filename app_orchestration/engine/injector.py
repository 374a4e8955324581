"""
App Orchestration - Capability Injector

Hands each step the collaborators its CAPABILITIES declare.
"""

from __future__ import annotations
from typing import Any, Dict, Optional
import logging

from app_orchestration.steps.base import Capability, Collaborators, Step

logger = logging.getLogger(__name__)


class CapabilityInjector:
    """
    Wires collaborators into steps.

    Only declared roles are touched. A declared role with no collaborator is
    left unset; the step fails with PreconditionError if it needs it.
    """

    def __init__(self, collaborators: Optional[Collaborators] = None):
        self.collaborators = collaborators or Collaborators()

    def prepare(self, step: Step, collaborators: Optional[Collaborators] = None) -> Step:
        """
        Inject declared collaborators into a step.

        Args:
            step: Freshly constructed step
            collaborators: Overrides the injector's collaborators for this call

        Returns:
            The same step, wired
        """
        source = collaborators or self.collaborators
        assignments: Dict[str, Any] = {}
        for capability in step.CAPABILITIES:
            value = source.get(Capability(capability))
            if value is None:
                logger.debug(f"No collaborator for '{capability.value}' requested by {step.STEP_NAME}")
                continue
            assignments[capability.value] = value

        # Applied only after every lookup succeeded
        for attribute, value in assignments.items():
            setattr(step, attribute, value)

        return step
