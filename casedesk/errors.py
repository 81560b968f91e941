# casedesk/errors.py
"""Domain errors raised by the storage and service layers.

The HTTP layer (not part of this package) maps these onto responses:
NotFound -> 404, ValidationFailure -> 400, PermissionDenied -> 403.
"""


class CaseDeskError(Exception):
    pass


class NotFound(CaseDeskError):
    def __init__(self, kind: str, entity_id=None):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} not found" + (f": {entity_id}" if entity_id else ""))


class ValidationFailure(CaseDeskError):
    pass


class PermissionDenied(CaseDeskError):
    pass


class BackendUnreachable(CaseDeskError):
    """Only raised by the startup probe; the selector turns it into a fallback."""


class NotificationChannelFailure(CaseDeskError):
    def __init__(self, channel: str, reason: str):
        self.channel = channel
        super().__init__(f"{channel}: {reason}")


class PartialWorkflowFailure(CaseDeskError):
    """A quick-case promotion stopped after `phase`; rerunning it resumes."""

    def __init__(self, quick_case_id: str, phase: str | None, reason: str):
        self.quick_case_id = quick_case_id
        self.phase = phase
        super().__init__(
            f"promotion of quick case {quick_case_id} interrupted after "
            f"phase={phase or 'none'}: {reason}"
        )
