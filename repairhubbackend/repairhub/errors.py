"""Domain errors shared by the pricing, ledger and intake layers.

Routers translate these into ``HTTPException``; the intake protocol never
raises them across the channel.
"""


class RepairHubError(Exception):
    pass


class ValidationError(RepairHubError):
    """Input rejected synchronously at the offending call, never coerced."""


class DuplicateSettlementError(ValidationError):
    def __init__(self, job_id: str):
        super().__init__(f"settlement already recorded for job {job_id}")
        self.job_id = job_id


class NotFoundError(RepairHubError):
    pass


class ProtocolMismatchError(RepairHubError):
    """Inbound event for a session that is not the current one.

    Expected under best-effort delivery: handlers log and drop it.
    """

    def __init__(self, event_type: str, got: str | None, current: str | None):
        super().__init__(f"{event_type} for session {got!r}, current is {current!r}")
        self.event_type = event_type
        self.got = got
        self.current = current

