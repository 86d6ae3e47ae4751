"""Which lifecycle actions are legal from which states."""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from shared.models import AutoFixStatus, Project, ProjectStatus

from ..errors import InvalidStateError


class LifecycleAction(str, Enum):
    RUN_QA = "run_qa"
    DEPLOY = "deploy"
    AUTO_FIX = "auto_fix"


@dataclass(frozen=True)
class TransitionRule:
    """Preconditions for one action and the in-progress marker it sets.

    ``from_statuses`` of None means any status is accepted.
    """

    action: LifecycleAction
    from_statuses: frozenset[str] | None
    in_progress: dict[str, Any]
    requires_auto_fix_success: bool = False
    requires_normalized_folder: bool = False


TRANSITION_RULES: dict[LifecycleAction, TransitionRule] = {
    LifecycleAction.RUN_QA: TransitionRule(
        action=LifecycleAction.RUN_QA,
        from_statuses=frozenset({ProjectStatus.REGISTERED.value, ProjectStatus.QA_FAILED.value}),
        in_progress={"status": ProjectStatus.QA_RUNNING.value},
        requires_auto_fix_success=True,
    ),
    LifecycleAction.DEPLOY: TransitionRule(
        action=LifecycleAction.DEPLOY,
        from_statuses=frozenset(
            {
                ProjectStatus.QA_PASSED.value,
                ProjectStatus.DEPLOYED.value,
                ProjectStatus.DEPLOY_FAILED.value,
                ProjectStatus.QA_FAILED.value,
            }
        ),
        in_progress={"status": ProjectStatus.DEPLOYING.value},
    ),
    LifecycleAction.AUTO_FIX: TransitionRule(
        action=LifecycleAction.AUTO_FIX,
        from_statuses=None,
        in_progress={"auto_fix_status": AutoFixStatus.RUNNING.value},
        requires_normalized_folder=True,
    ),
}


def check_transition(project: Project, action: LifecycleAction) -> TransitionRule:
    """Return the rule for ``action`` or raise ``InvalidStateError``."""
    rule = TRANSITION_RULES[action]

    if rule.from_statuses is not None and project.status not in rule.from_statuses:
        raise InvalidStateError(
            f"Cannot {action.value} on project with status: {project.status}"
        )
    if rule.requires_auto_fix_success and project.auto_fix_status != AutoFixStatus.SUCCESS.value:
        raise InvalidStateError(
            f"Cannot {action.value} until Auto-Fix has succeeded "
            f"(auto_fix_status: {project.auto_fix_status})"
        )
    if rule.requires_normalized_folder and not project.normalized_folder_path:
        raise InvalidStateError("Project must be normalized before auto-fix")
    return rule
