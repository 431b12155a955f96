"""
Transition Validation

Advisory-only policy: redundant transitions are allowed with a warning,
restart is always allowed, and only an undeterminable state is rejected.
"""

import structlog

from ..constants import STATE_RUNNING, STOPPED_STATES
from ..models.container import ValidationOutcome
from ..models.enums import ContainerOperation, ValidationVerdict

logger = structlog.get_logger()


class TransitionValidator:
    """Decides whether a requested lifecycle transition is sane."""

    def validate(
        self, container_id: str, operation: ContainerOperation, state: str | None
    ) -> ValidationOutcome:
        if not state:
            logger.warning(
                "Unable to determine container state",
                container_id=container_id,
                operation=operation.value,
            )
            return ValidationOutcome(
                verdict=ValidationVerdict.REJECTED,
                container_id=container_id,
                operation=operation,
                reason="unable to determine container state",
            )

        reason = None
        if operation is ContainerOperation.START and state == STATE_RUNNING:
            reason = "container is already running"
        elif operation is ContainerOperation.STOP and state in STOPPED_STATES:
            reason = "container is already stopped"

        if reason:
            logger.warning(
                "Redundant container operation allowed",
                container_id=container_id,
                operation=operation.value,
                state=state,
                reason=reason,
            )
            verdict = ValidationVerdict.ALLOWED_WITH_WARNING
        else:
            verdict = ValidationVerdict.ALLOWED

        logger.info(
            "Container validation passed",
            container_id=container_id,
            state=state,
            operation=operation.value,
        )
        return ValidationOutcome(
            verdict=verdict,
            container_id=container_id,
            operation=operation,
            state=state,
            reason=reason,
        )
