"""Exception types raised by the fleet client and controllers."""


class FleetError(Exception):
    """Base class for fleetdeck errors."""


class FleetTransportError(FleetError):
    """Network failure or non-success response on a read endpoint."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SnapshotParseError(FleetError):
    """Payload could not be interpreted as a fleet snapshot."""


class ActionInFlightError(FleetError):
    """Raised when an action is requested while another one is executing."""

    def __init__(self, in_flight: str) -> None:
        super().__init__(f"Action already in progress: {in_flight}")
        self.in_flight = in_flight


class CapabilityError(FleetError):
    """Action or view is not available for the given agent."""
