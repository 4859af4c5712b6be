"""
Loop detection for Shadow User.

Tracks the recent click stream and the length of the current scroll
streak, and produces corrective messages for the transcript when the
agent keeps clicking the same element or keeps scrolling.
"""

import json
from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from .utils import canonical_arguments, format_number

MAX_RECENT_ACTIONS = 5
REPEAT_THRESHOLD = 3
MAX_CONSECUTIVE_SCROLLS = 10


@dataclass(frozen=True)
class RecentAction:
    tool: str
    params: str


@dataclass
class LoopHeuristics:
    """Loop-tracking state for one run.

    Owned by the controller and fed every executed tool call, in order.
    """

    recent_actions: deque = field(default_factory=lambda: deque(maxlen=MAX_RECENT_ACTIONS))
    consecutive_scrolls: int = 0
    repeat_threshold: int = REPEAT_THRESHOLD
    max_consecutive_scrolls: int = MAX_CONSECUTIVE_SCROLLS

    def record(self, tool: str, arguments: str) -> None:
        """Account for one executed tool call.

        Scrolls extend the scroll streak and leave the click stream alone.
        A click ends the scroll streak and extends the click stream when it
        repeats the previous click, otherwise starts a new one. Any other
        action ends both.
        """
        if tool == "scroll":
            self.consecutive_scrolls += 1
            return

        self.consecutive_scrolls = 0
        if tool != "click":
            self.recent_actions.clear()
            return

        params = canonical_arguments(arguments, ignore=("generation",))
        if self.recent_actions and self.recent_actions[-1].params != params:
            self.recent_actions.clear()
        self.recent_actions.append(RecentAction(tool=tool, params=params))

    def repeat_count(self) -> int:
        """Length of the trailing run of identical clicks."""
        if not self.recent_actions:
            return 0
        last = self.recent_actions[-1]
        count = 0
        for action in reversed(self.recent_actions):
            if action.tool != "click" or action.params != last.params:
                break
            count += 1
        return count

    def pre_step_warning(self) -> Optional[str]:
        """Corrective message to show before the next decision, if any."""
        count = self.repeat_count()
        if count < self.repeat_threshold:
            return None

        index = _click_index(self.recent_actions[-1].params)
        return (
            f"IMPORTANT: You clicked element [{index}] {count} times. "
            "The page didn't change. Try scrolling down or clicking on a different element."
        )

    def post_batch_warning(self) -> Optional[str]:
        """Stop-scrolling message once the scroll streak is too long.

        Resets the streak when it fires; the message is advisory only.
        """
        if self.consecutive_scrolls <= self.max_consecutive_scrolls:
            return None

        self.consecutive_scrolls = 0
        return (
            "You've scrolled too many times consecutively. Please try a different "
            "approach or complete the task with available information."
        )


def _click_index(params: str) -> str:
    try:
        index = json.loads(params).get("index")
    except (json.JSONDecodeError, AttributeError):
        return params
    if isinstance(index, (int, float)):
        return format_number(index)
    return str(index)
