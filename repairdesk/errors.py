# repairdesk/errors.py
"""Domain errors turned into JSON responses by the app error handler."""

from repairdesk.models import JOB_CARD_STATUSES


class RepairDeskError(Exception):
    status_code = 400


class ValidationError(RepairDeskError):
    status_code = 400


class InvalidStatus(RepairDeskError):
    status_code = 400

    def __init__(self, status):
        self.status = status
        super().__init__(
            f"Invalid status: {status}. "
            f"Valid statuses are: {', '.join(JOB_CARD_STATUSES)}"
        )


class InvalidTransition(RepairDeskError):
    status_code = 409

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move job card from {current} to {target}")
