from enum import Enum


class ServiceState(str, Enum):
    """Lifecycle of the gateway process, held in `app.state.service_state`."""

    STARTING = "starting"
    READY = "ready"
    FAILED = "failed"
