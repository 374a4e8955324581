"""
App Orchestration

Declarative plan execution engine for application lifecycle tasks.
Builds, snapshots and destroys application deployments from YAML-configured plans.
"""

import logging

__version__ = "1.0.0"
__author__ = "App Orchestration Team"

# Silent unless the host application configures logging
logging.getLogger(__name__).addHandler(logging.NullHandler())
