"""
Adapters layer - External integrations (Microsoft Graph API).
"""

from .graph_authenticator import GraphAuthenticator
from .graph_client import GraphCalendarGateway
from .mock_gateway import MockCalendarGateway

__all__ = ["GraphAuthenticator", "GraphCalendarGateway", "MockCalendarGateway"]
