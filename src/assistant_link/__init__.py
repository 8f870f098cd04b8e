"""Assistant Link - coding-assistant account linking for the desktop client.

Example:
    from assistant_link import AuthFlowController, IntegrationClient

    controller = AuthFlowController(IntegrationClient())
    await controller.refresh_status("team-1")
    controller.on_user_connect_click("team-1")
"""

from assistant_link.config import LinkConfig
from assistant_link.exceptions import IntegrationError, InvalidInput, RequestFailure
from assistant_link.flows.controller import AuthFlowController, FlowView
from assistant_link.service.base import IntegrationService
from assistant_link.service.client import IntegrationClient

__version__ = "1.0.0"

__all__ = [
    "AuthFlowController",
    "FlowView",
    "IntegrationClient",
    "IntegrationService",
    "LinkConfig",
    # Exceptions
    "IntegrationError",
    "InvalidInput",
    "RequestFailure",
]
