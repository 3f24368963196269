"""
Admin Service Clients

Clients for the external push gateway and remote configuration service.
"""

from .push_gateway_client import PushGatewayClient
from .remote_config_client import RemoteConfigClient

__all__ = [
    "PushGatewayClient",
    "RemoteConfigClient",
]
