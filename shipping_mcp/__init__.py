"""
MCP servers for the EasyPost and Veeqo REST APIs.
"""

__version__ = "0.1.0"
