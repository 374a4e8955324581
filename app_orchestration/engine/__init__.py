"""
App Orchestration - Engine Package

Core plan execution engine:
- PlanNormalizer: Validates raw plans and turns them into typed plans
- CapabilityInjector: Hands steps the collaborators they declare
- PlanRunner: Runs plans step by step
"""

from app_orchestration.engine.plan import PlanNormalizer, normalize_plan
from app_orchestration.engine.injector import CapabilityInjector
from app_orchestration.engine.runner import PlanRunner

__all__ = ["PlanNormalizer", "normalize_plan", "CapabilityInjector", "PlanRunner"]
