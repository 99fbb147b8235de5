"""
Probe error taxonomy.

Every failure raised by the discovery, bootstrap and exchange layers is a
subclass of ProbeError so role runners can abort on any of them with a
single except clause.
"""

from typing import Optional


class ProbeError(Exception):
    """Base class for peer-probe failures."""


class ConditionTimeout(ProbeError, TimeoutError):
    """A polled condition did not become true in time."""

    def __init__(self, label: str, timeout: float):
        self.label = label
        self.timeout = timeout
        super().__init__(f"Timeout waiting for {label} after {timeout:.1f}s")


class DiscoveryTimeout(ConditionTimeout):
    """A discovery step timed out."""

    def __init__(self, step: str, label: str, timeout: float):
        super().__init__(label, timeout)
        self.step = step

    def __str__(self) -> str:
        return f"[{self.step}] {super().__str__()}"


class AcknowledgmentTimeout(ConditionTimeout):
    """The peer never answered (or never sent) the expected envelope."""


class ConnectionFailure(ProbeError):
    """Could not establish a transport connection to a peer."""

    def __init__(self, target: str, reason: str = "", step: Optional[str] = None):
        self.target = target
        self.reason = reason
        self.step = step
        message = f"Failed to connect to {target}"
        if reason:
            message += f": {reason}"
        if step:
            message = f"[{step}] {message}"
        super().__init__(message)


class RefreshError(ProbeError):
    """Connection refresh failed. Never fatal."""


class SendError(ProbeError):
    """A private message could not be sent."""


class MissingPeerKey(ProbeError):
    """No encryption key is known for the peer, so nothing can be sealed to it."""

    def __init__(self, identity: str):
        self.identity = identity
        super().__init__(f"No public key known for peer {identity[:16]}...")


class MalformedPayload(ProbeError, ValueError):
    """Inbound payload does not match the envelope schema."""
