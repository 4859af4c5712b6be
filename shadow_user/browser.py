"""
Browser session management for Shadow User.

Launches Chrome with a persistent profile (so cookies and logins survive
between runs) or attaches to an already-running Chrome over CDP, installs
the dialog strategy, and releases what it owns.
"""

import logging
from typing import Optional

from playwright.sync_api import (
    Browser,
    BrowserContext,
    Dialog,
    Error as PlaywrightError,
    Page,
    Playwright,
    sync_playwright,
)

from .config import AgentConfig, DialogPolicy
from .errors import InputChannelClosed
from .interrupts import HumanInput

logger = logging.getLogger(__name__)


class DialogHandler:
    """Applies the run's DialogPolicy to native alert/confirm/prompt dialogs."""

    def __init__(self, policy: DialogPolicy, human: Optional[HumanInput] = None):
        self.policy = policy
        self.human = human

    def __call__(self, dialog: Dialog) -> None:
        if self._should_accept(dialog):
            dialog.accept()
            decision = "accepted"
        else:
            dialog.dismiss()
            decision = "dismissed"
        logger.warning('Dialog %s "%s" %s', dialog.type, dialog.message, decision)

    def _should_accept(self, dialog: Dialog) -> bool:
        if self.policy == DialogPolicy.ACCEPT:
            return True
        if self.policy == DialogPolicy.DISMISS:
            return False

        if self.human is None:
            logger.warning("Dialog escalation requested but no human input is available")
            return False
        try:
            answer = self.human.prompt(f'Browser {dialog.type} says "{dialog.message}". Accept? (y/N)')
        except InputChannelClosed:
            logger.warning("Input closed while a dialog was pending")
            return False
        return answer.strip().lower() in ("y", "yes", "д", "да")


class BrowserSession:
    """Owns (or borrows) the browser for one run.

    Usage:
        with BrowserSession(config) as session:
            page = session.page
    """

    def __init__(self, config: AgentConfig, human: Optional[HumanInput] = None):
        """Initialize the session.

        Args:
            config: Agent configuration with browser settings
            human: Input collaborator for escalated dialogs
        """
        self.config = config
        self.human = human
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self.owns_browser = not config.attaches_to_running_browser
        self._closed = False

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Browser session is not open")
        return self._page

    def open(self) -> Page:
        """Start Playwright and get a page, launching or attaching as configured."""
        if self._closed:
            raise RuntimeError("Browser session has been closed")
        if self._page is not None:
            return self._page

        self._playwright = sync_playwright().start()
        viewport = {"width": self.config.viewport_width, "height": self.config.viewport_height}

        if self.config.attaches_to_running_browser:
            logger.info("Attaching to running Chrome at %s", self.config.remote_debug_url)
            self._browser = self._playwright.chromium.connect_over_cdp(self.config.remote_debug_url)
            contexts = self._browser.contexts
            self._context = contexts[0] if contexts else self._browser.new_context(viewport=viewport)
            self._page = self._context.new_page()
        else:
            launch_options = {
                "headless": self.config.headless,
                "args": ["--disable-blink-features=AutomationControlled"],
                "viewport": viewport,
            }
            if self.config.chrome_executable:
                launch_options["executable_path"] = self.config.chrome_executable

            logger.info("Launching Chrome with profile %s", self.config.chrome_profile_dir)
            self._context = self._playwright.chromium.launch_persistent_context(
                user_data_dir=str(self.config.chrome_profile_dir),
                **launch_options,
            )
            pages = self._context.pages
            self._page = pages[0] if pages else self._context.new_page()

        self._page.on("dialog", DialogHandler(self.config.dialog_policy, self.human))
        return self._page

    def close(self) -> None:
        """Release the browser if this session owns it.

        A borrowed browser is left running. Safe to call multiple times.
        """
        if self._closed:
            return
        self._closed = True

        if self.owns_browser and self._context:
            try:
                self._context.close()
            except PlaywrightError as e:
                logger.error("Error closing browser: %s", e)
        self._context = None
        self._browser = None
        self._page = None

        if self._playwright:
            try:
                self._playwright.stop()
            except Exception as e:
                logger.debug("Error stopping Playwright: %s", e)
            self._playwright = None

    def __enter__(self) -> "BrowserSession":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
