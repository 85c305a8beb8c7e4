class NotFound(LookupError):
    """Referenced row is missing or not owned by the acting user."""

    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class InvalidInput(ValueError):
    pass


class InvalidPeriod(InvalidInput):
    """Billing period rejected before any write."""


class RenewalFailed(RuntimeError):
    """Archive + overwrite did not complete; the subscription is unchanged."""


class DispatchTransientFailure(RuntimeError):
    """Email transport failed for one dispatch item."""


class ConcurrentUpdate(RuntimeError):
    """Another writer changed the subscription first; nothing was saved."""
