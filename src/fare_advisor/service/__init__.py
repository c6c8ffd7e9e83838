from .tools import AdvisorTools, Tool, ToolCategory

__all__ = ["AdvisorTools", "Tool", "ToolCategory"]
