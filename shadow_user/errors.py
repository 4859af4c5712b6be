"""
Run-level errors for Shadow User.

Expected action failures never raise; they are reported as ToolOutcome
values. The errors below end a run abnormally and reach the caller.
"""


class AgentRunError(RuntimeError):
    """Base class for fatal run failures."""


class PageClosedError(AgentRunError):
    """The page handle became invalid outside an expected navigation."""


class NoResponseError(AgentRunError):
    """The completion service returned no message at all."""


class InputChannelClosed(AgentRunError):
    """The human input stream closed while a prompt was pending."""
