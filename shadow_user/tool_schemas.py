"""
Typed tool schemas for Shadow User.

Provides Pydantic models for all tool arguments with validation, and the
function-calling schema list declared to the completion service. Names
and required fields here are the contract with the model.
"""

import json
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .utils import is_absolute_url


# =============================================================================
# Browser Tool Schemas
# =============================================================================

class OpenUrlRequest(BaseModel):
    """Request to navigate the active tab to a URL."""

    url: str = Field(description="Absolute URL to navigate to.")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if not is_absolute_url(v):
            raise ValueError(f"Not an absolute URL: {v!r}")
        return v


class ClickRequest(BaseModel):
    """Request to click an element by its element_id."""

    index: int = Field(description="Index number of the element to click (e.g., 5 for element [5]).")
    generation: Optional[int] = Field(
        default=None,
        description="Snapshot number the index was read from.",
    )


class FillRequest(BaseModel):
    """Request to fill text into an input field."""

    index: int = Field(description="Index number of the input field to fill.")
    text: str = Field(description="Text to type.")
    pressEnter: bool = Field(default=False, description="Press Enter after typing.")
    generation: Optional[int] = Field(
        default=None,
        description="Snapshot number the index was read from.",
    )


class PressRequest(BaseModel):
    """Request to press a keyboard key."""

    key: str = Field(description="Key name for page.keyboard.press")

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Key cannot be empty")
        return v.strip()


class ScrollRequest(BaseModel):
    """Request to scroll the page by a wheel delta."""

    dx: float = Field(default=0, description="Horizontal delta.")
    dy: float = Field(description="Vertical delta.")


class WaitForNavigationRequest(BaseModel):
    """Request to wait for the page to finish loading."""

    timeoutMs: int = Field(default=10000, ge=0, le=120000, description="Timeout in milliseconds.")


class GoBackRequest(BaseModel):
    """Request to go back one history entry."""


# =============================================================================
# Human Interrupt Signal
# =============================================================================

class InterruptCategory(str, Enum):
    """Why the agent needs a human."""
    CREDENTIALS = "credentials"
    VERIFICATION = "verification"


class NeedsHumanRequest(BaseModel):
    """Structured request for human input."""

    category: InterruptCategory = Field(
        description="credentials: login, password, payment or contact data. "
                    "verification: one-time code or confirmation of a critical step."
    )
    prompt: str = Field(description="Question to show the human.")


# =============================================================================
# Schema Registry
# =============================================================================

ACTION_SCHEMAS: dict[str, type[BaseModel]] = {
    "open_url": OpenUrlRequest,
    "click": ClickRequest,
    "fill": FillRequest,
    "press": PressRequest,
    "scroll": ScrollRequest,
    "wait_for_navigation": WaitForNavigationRequest,
    "go_back": GoBackRequest,
}

NEEDS_HUMAN = "needs_human"


def get_schema_for_action(action: str) -> Optional[type[BaseModel]]:
    """Get the Pydantic schema for an action."""
    return ACTION_SCHEMAS.get(action)


def parse_arguments(schema: type[BaseModel], arguments: str) -> BaseModel:
    """Parse a JSON argument string into a validated model.

    Raises:
        json.JSONDecodeError: If the string is not JSON
        ValidationError: If the arguments do not match the schema
    """
    data = json.loads(arguments) if arguments and arguments.strip() else {}
    return schema.model_validate(data)


def validate_action_args(action: str, arguments: str) -> tuple[bool, Optional[BaseModel], Optional[str]]:
    """Validate action arguments against schema.

    Args:
        action: Action name
        arguments: JSON-encoded arguments

    Returns:
        Tuple of (is_valid, validated_model, error_message)
    """
    schema = get_schema_for_action(action)
    if schema is None:
        return False, None, f"Unknown tool {action}."

    try:
        return True, parse_arguments(schema, arguments), None
    except json.JSONDecodeError as e:
        return False, None, f"Arguments for {action} are not valid JSON: {e}"
    except ValidationError as e:
        return False, None, f"Invalid arguments for {action}: {e.errors(include_url=False)}"


# =============================================================================
# Function-calling declarations
# =============================================================================

def _function(name: str, description: str, properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required,
            },
        },
    }


_GENERATION_PROPERTY = {
    "type": "number",
    "description": "Snapshot number shown in the observation header. Optional.",
}

TOOL_SCHEMAS: list[dict[str, Any]] = [
    _function(
        "open_url",
        "Open a URL in the active tab.",
        {"url": {"type": "string", "description": "Absolute URL to navigate to."}},
        ["url"],
    ),
    _function(
        "click",
        "Click on an element by its index number. Look at the INTERACTIVE ELEMENTS list "
        "and provide the element_id of the element you want to click.",
        {
            "index": {"type": "number", "description": "Index number of the element to click (e.g., 5 for element [5])."},
            "generation": _GENERATION_PROPERTY,
        },
        ["index"],
    ),
    _function(
        "fill",
        "Fill text into an input field by its index among the page's input and textarea fields.",
        {
            "index": {"type": "number", "description": "Index number of the input field to fill."},
            "text": {"type": "string", "description": "Text to type."},
            "pressEnter": {"type": "boolean", "description": "Press Enter after typing."},
            "generation": _GENERATION_PROPERTY,
        },
        ["index", "text"],
    ),
    _function(
        "press",
        "Press a keyboard key (e.g., Enter, Tab, ArrowDown).",
        {"key": {"type": "string", "description": "Key name for page.keyboard.press"}},
        ["key"],
    ),
    _function(
        "scroll",
        "Scroll the page by a delta in pixels.",
        {
            "dx": {"type": "number", "description": "Horizontal delta."},
            "dy": {"type": "number", "description": "Vertical delta."},
        },
        ["dy"],
    ),
    _function(
        "wait_for_navigation",
        "Wait for the next navigation or network idle to settle the page.",
        {"timeoutMs": {"type": "number", "description": "Timeout in milliseconds."}},
        [],
    ),
    _function(
        "go_back",
        "Go back to the previous page in browser history.",
        {},
        [],
    ),
    _function(
        NEEDS_HUMAN,
        "Ask the human for data you cannot find in the User Profile (password, CVV, "
        "SMS or 2FA code) or for confirmation before the final payment step.",
        {
            "category": {
                "type": "string",
                "enum": [c.value for c in InterruptCategory],
                "description": "credentials or verification",
            },
            "prompt": {"type": "string", "description": "Question to show the human."},
        },
        ["category", "prompt"],
    ),
]
