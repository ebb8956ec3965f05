"""
Provider REST shims built on ServiceClient.
"""

from shipping_mcp.providers.base import BaseProvider, validate_input
from shipping_mcp.providers.easypost import EasyPostProvider
from shipping_mcp.providers.veeqo import VeeqoProvider

__all__ = ["BaseProvider", "EasyPostProvider", "VeeqoProvider", "validate_input"]
