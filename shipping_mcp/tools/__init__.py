from shipping_mcp.tools.base import ERROR_CODES, ToolSet, run_tool
from shipping_mcp.tools.easypost import EasyPostTools
from shipping_mcp.tools.veeqo import VeeqoTools

__all__ = ["ERROR_CODES", "EasyPostTools", "ToolSet", "VeeqoTools", "run_tool"]
