"""
Tests for browser session management and dialog handling.
"""

import logging

import pytest
from unittest.mock import MagicMock, patch

from shadow_user.browser import BrowserSession, DialogHandler
from shadow_user.config import AgentConfig, DialogPolicy
from shadow_user.errors import InputChannelClosed


def make_dialog():
    dialog = MagicMock()
    dialog.type = "confirm"
    dialog.message = "Leave this page?"
    return dialog


class TestDialogHandler:
    """Tests for each dialog policy."""

    def test_accept(self):
        dialog = make_dialog()
        DialogHandler(DialogPolicy.ACCEPT)(dialog)

        dialog.accept.assert_called_once()
        dialog.dismiss.assert_not_called()

    def test_dismiss(self):
        dialog = make_dialog()
        DialogHandler(DialogPolicy.DISMISS)(dialog)

        dialog.dismiss.assert_called_once()
        dialog.accept.assert_not_called()

    def test_escalate_yes(self):
        dialog = make_dialog()
        human = MagicMock()
        human.prompt.return_value = "y"

        DialogHandler(DialogPolicy.ESCALATE, human)(dialog)

        dialog.accept.assert_called_once()
        assert "Leave this page?" in human.prompt.call_args[0][0]

    def test_escalate_no(self):
        dialog = make_dialog()
        human = MagicMock()
        human.prompt.return_value = ""

        DialogHandler(DialogPolicy.ESCALATE, human)(dialog)

        dialog.dismiss.assert_called_once()

    def test_escalate_without_human(self):
        """With nobody to ask, an escalated dialog is dismissed."""
        dialog = make_dialog()
        DialogHandler(DialogPolicy.ESCALATE)(dialog)

        dialog.dismiss.assert_called_once()

    def test_escalate_closed_input(self):
        dialog = make_dialog()
        human = MagicMock()
        human.prompt.side_effect = InputChannelClosed("Input stream closed")

        DialogHandler(DialogPolicy.ESCALATE, human)(dialog)

        dialog.dismiss.assert_called_once()

    def test_decision_logged_at_warning(self, caplog):
        """The dialog decision is visible at the CLI's default WARNING level."""
        dialog = make_dialog()

        with caplog.at_level(logging.WARNING, logger="shadow_user.browser"):
            DialogHandler(DialogPolicy.ACCEPT)(dialog)

        records = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(records) == 1
        assert 'confirm "Leave this page?" accepted' in records[0].getMessage()


@pytest.fixture
def playwright():
    with patch("shadow_user.browser.sync_playwright") as sync_playwright:
        yield sync_playwright.return_value.start.return_value


class TestBrowserSession:
    """Tests for launching, attaching and releasing the browser."""

    def test_launch_owns_browser(self, playwright, tmp_path):
        """A launched browser is closed with the session."""
        context = playwright.chromium.launch_persistent_context.return_value
        page = MagicMock()
        context.pages = [page]
        config = AgentConfig(chrome_profile_dir=tmp_path, remote_debug_url=None, headless=True)

        session = BrowserSession(config)
        assert session.open() is page

        kwargs = playwright.chromium.launch_persistent_context.call_args.kwargs
        assert kwargs["user_data_dir"] == str(tmp_path)
        assert kwargs["headless"] is True
        assert "--disable-blink-features=AutomationControlled" in kwargs["args"]
        assert page.on.call_args[0][0] == "dialog"

        session.close()
        session.close()

        context.close.assert_called_once()
        playwright.stop.assert_called_once()

    def test_attach_borrows_browser(self, playwright):
        """An attached browser is left running on close."""
        browser = playwright.chromium.connect_over_cdp.return_value
        context = MagicMock()
        browser.contexts = [context]
        config = AgentConfig(remote_debug_url="http://localhost:9222")

        with BrowserSession(config) as session:
            assert session.page is context.new_page.return_value

        playwright.chromium.connect_over_cdp.assert_called_once_with("http://localhost:9222")
        context.close.assert_not_called()
        playwright.stop.assert_called_once()

    def test_page_before_open(self):
        session = BrowserSession(AgentConfig(remote_debug_url="http://localhost:9222"))
        with pytest.raises(RuntimeError):
            session.page
