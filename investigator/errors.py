from __future__ import annotations


class InvestigatorError(Exception):
    """Base class for errors raised by the investigator package."""


class InvestigationValidationError(InvestigatorError, ValueError):
    """Caller supplied malformed input (for example an empty query)."""


class InvestigationNotFoundError(InvestigatorError, LookupError):
    def __init__(self, investigation_id: str):
        super().__init__(f"Investigation not found: {investigation_id}")
        self.investigation_id = investigation_id


class ToolError(InvestigatorError):
    """Transport-level failure of an external tool (search, extract, memory)."""

    def __init__(self, tool: str, message: str):
        super().__init__(f"{tool}: {message}")
        self.tool = tool


class LLMError(InvestigatorError):
    """Transport-level failure of the language model endpoint."""
