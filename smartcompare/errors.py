"""Exception types raised by the engine."""


class SmartCompareError(Exception):
    """Base class for engine errors callers are expected to handle."""


class InvalidTransitionError(SmartCompareError):
    """A listing was asked to move to a verification state it cannot reach."""
    def __init__(self, current: str, target: str, reason: str = ""):
        self.current = current
        self.target = target
        self.reason = reason
        super().__init__(
            f"Cannot move verification from {current} to {target}"
            f"{f': {reason}' if reason else ''}"
        )


class RefreshInProgressError(SmartCompareError):
    """A refresh or validation pass was started while another is still running."""
    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Cannot start {operation}: another refresh is in flight")


class DuplicateListingError(SmartCompareError):
    """A competitor set contains the same listing id more than once."""
    def __init__(self, listing_ids: list[str]):
        self.listing_ids = listing_ids
        super().__init__(f"Duplicate listing id(s) in competitor set: {', '.join(listing_ids)}")
