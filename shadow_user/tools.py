"""
Browser tools for Shadow User.

Validates and executes one model-requested action against the Playwright
page. Every outcome, including driver errors, comes back as a ToolOutcome;
nothing raises past BrowserTools.execute.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from playwright.sync_api import (
    Error as PlaywrightError,
    Locator,
    Page,
    TimeoutError as PlaywrightTimeoutError,
)

from .llm_client import ToolCall
from .observation import (
    DESCRIBE_ELEMENT_JS,
    FILLABLE_SELECTOR,
    INTERACTIVE_SELECTOR,
    Observation,
)
from .tool_schemas import (
    ClickRequest,
    FillRequest,
    GoBackRequest,
    OpenUrlRequest,
    PressRequest,
    ScrollRequest,
    WaitForNavigationRequest,
    validate_action_args,
)
from .utils import format_number, is_cross_origin_link, parse_domain

logger = logging.getLogger(__name__)

CLICK_TIMEOUT_MS = 3000
FILL_TIMEOUT_MS = 4000
SCROLL_INTO_VIEW_TIMEOUT_MS = 5000
SETTLE_AFTER_NAVIGATION_MS = 2500


class OutcomeKind(str, Enum):
    """Classification of a tool outcome."""
    OK = "ok"
    FAILED = "failed"
    INVALID_ARGS = "invalid_args"
    UNKNOWN_TOOL = "unknown_tool"
    REFUSED = "refused"
    OUT_OF_RANGE = "out_of_range"
    STALE_SNAPSHOT = "stale_snapshot"
    NAVIGATED = "navigated"
    TIMEOUT = "timeout"


@dataclass
class ToolOutcome:
    """Result of a tool execution."""
    ok: bool
    detail: str
    kind: OutcomeKind = OutcomeKind.OK

    @classmethod
    def failure(cls, detail: str, kind: OutcomeKind = OutcomeKind.FAILED) -> "ToolOutcome":
        return cls(ok=False, detail=detail, kind=kind)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "ok": self.ok,
            "detail": self.detail,
            "kind": self.kind.value,
        }


def _is_navigation_error(error: Exception) -> bool:
    """Closed or detached handles mean the page moved on under us."""
    message = str(error).lower()
    return "closed" in message or "detached" in message


class BrowserTools:
    """Executes browser actions via Playwright."""

    def __init__(
        self,
        page: Page,
        blocked_url_patterns: Sequence[str] = (),
        navigation_timeout: int = 15000,
        settle_ms: int = SETTLE_AFTER_NAVIGATION_MS,
    ):
        """Initialize browser tools.

        Args:
            page: Playwright page instance
            blocked_url_patterns: Regexes of URLs open_url must refuse
            navigation_timeout: Timeout for open_url in milliseconds
            settle_ms: Pause after navigation for client-side rendering
        """
        self.page = page
        self.blocked_url_patterns = [re.compile(p, re.IGNORECASE) for p in blocked_url_patterns]
        self.navigation_timeout = navigation_timeout
        self.settle_ms = settle_ms
        self._observation: Optional[Observation] = None

    def bind_snapshot(self, observation: Observation) -> None:
        """Remember the observation the model is about to act on."""
        self._observation = observation

    @property
    def generation(self) -> Optional[int]:
        """Generation of the latest bound snapshot, if any."""
        return self._observation.generation if self._observation else None

    def execute(self, call: ToolCall) -> ToolOutcome:
        """Execute one tool call.

        Args:
            call: Tool call requested by the model

        Returns:
            ToolOutcome with ok flag and a model-readable detail
        """
        method_map: dict[str, Callable[[Any], ToolOutcome]] = {
            "open_url": self.open_url,
            "click": self.click,
            "fill": self.fill,
            "press": self.press,
            "scroll": self.scroll,
            "wait_for_navigation": self.wait_for_navigation,
            "go_back": self.go_back,
        }

        method = method_map.get(call.name)
        if method is None:
            return ToolOutcome.failure(f"Unknown tool {call.name}.", OutcomeKind.UNKNOWN_TOOL)

        valid, request, error = validate_action_args(call.name, call.arguments)
        if not valid:
            return ToolOutcome.failure(error or "Invalid arguments.", OutcomeKind.INVALID_ARGS)

        logger.debug("Executing %s(%s)", call.name, call.arguments)
        try:
            return method(request)
        except PlaywrightTimeoutError as e:
            return ToolOutcome.failure(f"Tool {call.name} timed out: {e}", OutcomeKind.TIMEOUT)
        except Exception as e:
            return ToolOutcome.failure(f"Tool {call.name} failed: {type(e).__name__}: {e}")

    def open_url(self, request: OpenUrlRequest) -> ToolOutcome:
        """Navigate the active tab to an absolute URL."""
        url = request.url

        for pattern in self.blocked_url_patterns:
            if pattern.search(url):
                return ToolOutcome.failure(
                    f"Blocked navigation to {url}; use on-page login popup or checkout flow instead.",
                    OutcomeKind.REFUSED,
                )

        self.page.goto(url, wait_until="load", timeout=self.navigation_timeout)
        self.page.wait_for_timeout(self.settle_ms)
        return ToolOutcome(ok=True, detail=f"Navigated to {url}.")

    def click(self, request: ClickRequest) -> ToolOutcome:
        """Click the element at an index of a fresh interactive-element query.

        Links that open a new tab or leave the current site are refused
        without clicking.
        """
        index = request.index
        stale = self._check_generation(request.generation)
        if stale:
            return stale

        try:
            elements = self.page.locator(INTERACTIVE_SELECTOR).all()
            if index < 0 or index >= len(elements):
                return ToolOutcome.failure(
                    f"Invalid index {index}. Available elements: 0-{len(elements) - 1}",
                    OutcomeKind.OUT_OF_RANGE,
                )

            element = elements[index]
            stale = self._check_descriptor(index, element)
            if stale:
                return stale

            target = self._attribute(element, "target")
            href = self._attribute(element, "href")

            if target == "_blank":
                return ToolOutcome.failure(
                    f'Element [{index}] has target="_blank" (new tab). Skipping.',
                    OutcomeKind.REFUSED,
                )

            if is_cross_origin_link(href, self.page.url):
                return ToolOutcome.failure(
                    f"Element [{index}] leads to external site {parse_domain(href)}. Skipping.",
                    OutcomeKind.REFUSED,
                )

            try:
                element.scroll_into_view_if_needed(timeout=SCROLL_INTO_VIEW_TIMEOUT_MS)
            except PlaywrightError:
                logger.debug("Could not scroll element %d into view", index)
            self.page.wait_for_timeout(200)

            return self._settle_click(element, index)

        except PlaywrightError as e:
            if _is_navigation_error(e):
                return ToolOutcome.failure(
                    f"Element [{index}] triggered page close/navigation.",
                    OutcomeKind.NAVIGATED,
                )
            return ToolOutcome.failure(f"Failed to click element [{index}]: {e}")

    def _settle_click(self, element: Locator, index: int) -> ToolOutcome:
        """Click with a fixed bound.

        A click that starts a full navigation may never report back; if
        the bound runs out after the URL already changed, the navigation
        won and the click counts as done.
        """
        url_before = self.page.url
        try:
            element.click(timeout=CLICK_TIMEOUT_MS)
        except PlaywrightTimeoutError:
            if self.page.url != url_before:
                return ToolOutcome(
                    ok=True,
                    detail=f"Clicked element [{index}]; page navigated to {self.page.url}.",
                )
            return ToolOutcome.failure(
                f"Click on element [{index}] did not complete within {CLICK_TIMEOUT_MS} ms.",
                OutcomeKind.TIMEOUT,
            )

        self.page.wait_for_timeout(500)
        return ToolOutcome(ok=True, detail=f"Clicked element [{index}].")

    def fill(self, request: FillRequest) -> ToolOutcome:
        """Fill text into the input/textarea at an index."""
        index = request.index
        stale = self._check_generation(request.generation)
        if stale:
            return stale

        try:
            elements = self.page.locator(FILLABLE_SELECTOR).all()
            if index < 0 or index >= len(elements):
                return ToolOutcome.failure(
                    f"Invalid index {index}. Available inputs: 0-{len(elements) - 1}",
                    OutcomeKind.OUT_OF_RANGE,
                )

            element = elements[index]
            element.scroll_into_view_if_needed(timeout=SCROLL_INTO_VIEW_TIMEOUT_MS)
            self.page.wait_for_timeout(200)
            element.fill(request.text, timeout=FILL_TIMEOUT_MS)
            if request.pressEnter:
                element.press("Enter")
        except PlaywrightError as e:
            return ToolOutcome.failure(f"Failed to fill element [{index}]: {e}")

        return ToolOutcome(ok=True, detail=f"Filled element [{index}] with text.")

    def press(self, request: PressRequest) -> ToolOutcome:
        """Press a single named key."""
        self.page.keyboard.press(request.key)
        return ToolOutcome(ok=True, detail=f"Pressed {request.key}.")

    def scroll(self, request: ScrollRequest) -> ToolOutcome:
        """Scroll the page by a wheel delta."""
        self.page.mouse.wheel(request.dx, request.dy)
        return ToolOutcome(
            ok=True,
            detail=f"Scrolled by dx={format_number(request.dx)}, dy={format_number(request.dy)}.",
        )

    def wait_for_navigation(self, request: WaitForNavigationRequest) -> ToolOutcome:
        """Wait for the load milestone; running out of time is reported, not raised."""
        try:
            self.page.wait_for_load_state("load", timeout=request.timeoutMs)
        except PlaywrightTimeoutError:
            return ToolOutcome.failure(
                f"Page did not finish loading within {request.timeoutMs} ms.",
                OutcomeKind.TIMEOUT,
            )
        return ToolOutcome(ok=True, detail="Navigation wait completed.")

    def go_back(self, request: GoBackRequest) -> ToolOutcome:
        """Go back one history entry."""
        response = self.page.go_back()
        if response is None:
            return ToolOutcome(ok=True, detail="Navigated back (no new document loaded).")
        return ToolOutcome(ok=True, detail="Navigated back.")

    # Helpers for index validation

    def _check_generation(self, generation: Optional[int]) -> Optional[ToolOutcome]:
        current = self.generation
        if generation is None or current is None or generation == current:
            return None
        return ToolOutcome.failure(
            f"Snapshot {generation} is stale; the current snapshot is {current}. "
            "Use element ids from the latest INTERACTIVE ELEMENTS list.",
            OutcomeKind.STALE_SNAPSHOT,
        )

    def _check_descriptor(self, index: int, element: Locator) -> Optional[ToolOutcome]:
        """Verify the live element still matches what the model was shown."""
        if self._observation is None:
            return None
        expected = self._observation.element(index)
        if expected is None:
            return None

        live = element.evaluate(DESCRIBE_ELEMENT_JS) or {}
        if live.get("role") == expected.role and live.get("name") == expected.name:
            return None

        logger.debug("Element %d changed: expected %s, found %s", index, expected, live)
        return ToolOutcome.failure(
            f"Element [{index}] changed since snapshot {self._observation.generation}: "
            f"expected {expected.role} {expected.name!r}, found {live.get('role')} {live.get('name')!r}. "
            "The page has changed; read the new snapshot before clicking.",
            OutcomeKind.STALE_SNAPSHOT,
        )

    @staticmethod
    def _attribute(element: Locator, name: str) -> Optional[str]:
        try:
            return element.get_attribute(name, timeout=2000)
        except PlaywrightError:
            return None
