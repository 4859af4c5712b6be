"""
Tests for the agent loop.

Drives BrowserAgent with a scripted completion client, a fake page and a
fake browser session; no real browser or network is used.
"""

import json

import pytest
from unittest.mock import MagicMock

from shadow_user.agent import BrowserAgent, FinishReason
from shadow_user.config import AgentConfig
from shadow_user.errors import InputChannelClosed, NoResponseError, PageClosedError
from shadow_user.interrupts import HumanInput
from shadow_user.llm_client import AssistantMessage, ToolCall
from shadow_user.profile import UserProfile


class ScriptedHuman(HumanInput):
    def __init__(self, answers):
        self.answers = list(answers)
        self.prompts = []

    def prompt(self, text):
        self.prompts.append(text)
        if not self.answers:
            raise InputChannelClosed("Input stream closed")
        return self.answers.pop(0)


def tool_reply(*calls):
    return AssistantMessage(tool_calls=[
        ToolCall(id=f"call_{i}", name=name, arguments=json.dumps(args))
        for i, (name, args) in enumerate(calls)
    ])


def text_reply(text):
    return AssistantMessage(content=text)


@pytest.fixture
def page():
    page = MagicMock()
    page.url = "about:blank"
    page.title.return_value = ""
    page.is_closed.return_value = False
    page.locator.return_value.all.return_value = []
    page.evaluate.side_effect = lambda script, arg=None: [] if arg is None else {"candidate_count": 0, "elements": []}
    return page


@pytest.fixture
def session(page):
    session = MagicMock()
    session.open.return_value = page
    return session


@pytest.fixture
def config(tmp_path):
    return AgentConfig(
        goal="Open example.com and tell me the title",
        runs_dir=tmp_path / "runs",
        chrome_profile_dir=tmp_path / "chrome",
        max_steps=10,
    )


def make_agent(config, session, replies, human=None):
    llm = MagicMock()
    llm.complete.side_effect = list(replies)
    agent = BrowserAgent(
        config,
        llm_client=llm,
        human=human,
        profile=UserProfile(),
        session_factory=lambda cfg, hm: session,
        enable_console=False,
    )
    return agent, llm


def read_steps(result):
    lines = (result.run_dir / "steps.jsonl").read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines]


class TestAgentLoop:
    """Tests for the main decision loop."""

    def test_open_url_then_finish(self, config, session, page):
        """One action then a text reply ends the run normally."""
        agent, llm = make_agent(config, session, [
            tool_reply(("open_url", {"url": "https://example.com"})),
            text_reply("The title is Example Domain."),
        ])

        result = agent.run()

        assert result.success
        assert result.finished_reason == FinishReason.AGENT_FINISHED
        assert result.final_message == "The title is Example Domain."
        assert result.steps_taken == 2
        page.goto.assert_any_call("about:blank")
        page.goto.assert_any_call("https://example.com", wait_until="load", timeout=15000)
        session.close.assert_called_once()
        llm.close.assert_not_called()

        assert {"role": "tool", "tool_call_id": "call_0", "content": "Navigated to https://example.com."} in agent.messages
        observations = [m["content"] for m in agent.messages if m["role"] == "user" and m["content"].startswith("URL:")]
        assert [o.splitlines()[2] for o in observations] == ["Snapshot: 1", "Snapshot: 2"]

        steps = read_steps(result)
        assert len(steps) == 2
        assert steps[0]["tool_calls"][0]["function"]["name"] == "open_url"
        assert steps[0]["outcomes"][0]["ok"] is True

    def test_transcript_starts_with_prompt_and_goal(self, config, session):
        agent, _ = make_agent(config, session, [text_reply("Nothing to do.")])

        agent.run()

        assert agent.messages[0] == {"role": "system", "content": BrowserAgent.SYSTEM_PROMPT}
        assert agent.messages[1] == {"role": "user", "content": "Goal: Open example.com and tell me the title"}

    def test_budget_exhausted(self, config, session):
        config.max_steps = 3
        agent, llm = make_agent(config, session, [tool_reply(("scroll", {"dy": 500}))] * 3)

        result = agent.run()

        assert not result.success
        assert result.finished_reason == FinishReason.STEP_BUDGET_EXHAUSTED
        assert result.steps_taken == 3
        assert llm.complete.call_count == 3

    def test_failed_action_does_not_stop_run(self, config, session):
        """An action error is fed back to the model and the loop goes on."""
        agent, _ = make_agent(config, session, [
            tool_reply(("click", {"index": 4})),
            text_reply("Could not find it."),
        ])

        result = agent.run()

        assert result.success
        tool_messages = [m for m in agent.messages if m["role"] == "tool"]
        assert tool_messages[0]["content"] == "Invalid index 4. Available elements: 0--1"

    def test_repeated_clicks_inject_warning(self, config, session):
        replies = [tool_reply(("click", {"index": 0}))] * 3 + [text_reply("Stuck.")]
        agent, _ = make_agent(config, session, replies)

        agent.run()

        warnings = [
            m for m in agent.messages
            if m["role"] == "user" and m["content"].startswith("IMPORTANT: You clicked element [0] 3 times")
        ]
        assert len(warnings) == 1


class TestFatalErrors:
    """Tests for abnormal run endings."""

    def test_no_response(self, config, session):
        agent, _ = make_agent(config, session, [None])

        with pytest.raises(NoResponseError):
            agent.run()

        session.close.assert_called_once()

    def test_page_closed(self, config, session, page):
        page.is_closed.return_value = True
        agent, _ = make_agent(config, session, [tool_reply(("press", {"key": "Enter"}))])

        with pytest.raises(PageClosedError):
            agent.run()

        session.close.assert_called_once()

    def test_input_closed(self, config, session):
        """A closed input stream while a prompt is pending ends the run."""
        agent, _ = make_agent(config, session, [text_reply("Enter your password")], human=ScriptedHuman([]))

        with pytest.raises(InputChannelClosed):
            agent.run()

        session.close.assert_called_once()


class TestHumanInterrupts:
    """Tests for pausing for the human."""

    def test_needs_human_reply_is_fed_back(self, config, session):
        """The human's answer reaches the model and never reaches the log."""
        human = ScriptedHuman(["123456", ""])
        agent, _ = make_agent(config, session, [
            tool_reply(("needs_human", {"category": "verification", "prompt": "SMS code?"})),
            text_reply("Logged in."),
        ], human=human)

        result = agent.run()

        assert human.prompts[0] == "SMS code?"
        assert {"role": "tool", "tool_call_id": "call_0", "content": "Human replied: 123456"} in agent.messages
        assert "123456" not in (result.run_dir / "steps.jsonl").read_text(encoding="utf-8")

    def test_needs_human_declined_ends_run(self, config, session):
        human = ScriptedHuman(["", ""])
        agent, llm = make_agent(config, session, [
            tool_reply(("needs_human", {"category": "credentials", "prompt": "Password?"})),
        ], human=human)

        result = agent.run()

        assert result.finished_reason == FinishReason.HUMAN_ENDED
        assert llm.complete.call_count == 1

    def test_text_reply_with_answer_continues(self, config, session):
        """A free-text request answered by the human continues the run."""
        human = ScriptedHuman(["hunter2", ""])
        agent, llm = make_agent(config, session, [
            text_reply("Please enter your password"),
            text_reply("Signed in."),
        ], human=human)

        result = agent.run()

        assert result.steps_taken == 2
        assert llm.complete.call_count == 2
        assert {"role": "assistant", "content": "Please enter your password"} in agent.messages
        assert {"role": "user", "content": "hunter2"} in agent.messages

    def test_no_human_ends_on_text(self, config, session):
        agent, llm = make_agent(config, session, [text_reply("Please enter your password")])

        result = agent.run()

        assert result.finished_reason == FinishReason.AGENT_FINISHED
        assert llm.complete.call_count == 1
