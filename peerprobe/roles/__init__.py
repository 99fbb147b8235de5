"""
Role workflows and entry points.
"""

from .workflow import (
    ProbeReport,
    InitiatorWorkflow,
    ResponderWorkflow,
    run_role,
    run_initiator,
    run_responder
)

__all__ = [
    "ProbeReport",
    "InitiatorWorkflow",
    "ResponderWorkflow",
    "run_role",
    "run_initiator",
    "run_responder"
]
