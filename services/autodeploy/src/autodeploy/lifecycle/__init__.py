"""Lifecycle state machine: legality table, QA and the orchestrator."""

from .orchestrator import LifecycleOrchestrator
from .transitions import LifecycleAction, TransitionRule, check_transition

__all__ = ["LifecycleAction", "LifecycleOrchestrator", "TransitionRule", "check_transition"]
