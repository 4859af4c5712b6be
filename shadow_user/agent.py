"""
Agent core for Shadow User.

Provides the main agent loop that orchestrates observation, the LLM,
browser tools, loop heuristics and the human interrupt policy.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from playwright.sync_api import Page
from pydantic import ValidationError

from .browser import BrowserSession
from .config import AgentConfig
from .errors import NoResponseError, PageClosedError
from .heuristics import LoopHeuristics
from .interrupts import HumanInput, InterruptPolicy
from .llm_client import AssistantMessage, LLMClient, ToolCall
from .logger import RunLogger
from .observation import Observation, capture_snapshot, render_observation
from .profile import UserProfile, load_user_profile
from .tool_schemas import NEEDS_HUMAN, TOOL_SCHEMAS, NeedsHumanRequest, parse_arguments
from .tools import BrowserTools, OutcomeKind, ToolOutcome

logger = logging.getLogger(__name__)


class FinishReason(str, Enum):
    """Why a run ended without an error."""
    AGENT_FINISHED = "agent finished"
    HUMAN_ENDED = "human ended the run"
    STEP_BUDGET_EXHAUSTED = "step budget exhausted"


@dataclass
class AgentResult:
    """Result of running the agent."""
    success: bool
    final_message: Optional[str]
    steps_taken: int
    run_dir: Path
    finished_reason: FinishReason


class BrowserAgent:
    """Main browser agent that runs the perception, decision, action loop."""

    SYSTEM_PROMPT = """You are Shadow User, an autonomous web-automation agent. Your task: execute the user's goal with MINIMAL human interaction.

=== CORE PRINCIPLE: AUTONOMY ===
First check YOUR AVAILABLE DATA (from the User Profile), then act. Only interrupt for critical missing data.

The User Profile contains:
- identity (phone, email, name)
- locations (home address, work address)
- preferences (food likes/dislikes, budget)
- payment (preferred method)

=== WHEN TO ASK THE HUMAN ===
Call needs_human ONLY for:
1. Missing secret data: passwords, CVV, 2FA codes, SMS codes (category "verification" for one-time codes, "credentials" otherwise)
2. Critical action confirmation: the final payment button ("Pay", "Place order")
3. Missing required data: a required field whose value is not in YOUR AVAILABLE DATA

DO NOT ASK for:
- Data already listed in YOUR AVAILABLE DATA (address, phone, email)
- Navigation decisions (which category to open, which item to choose)
- Trivial confirmations (cookie banners, age gates - handle them yourself)

=== ELEMENT INTERACTION ===
Each observation lists interactive elements as JSON:
{"element_id": N, "role": "button", "name": "Add to cart"}

To click: click({index: N}) where N is element_id. Pass the Snapshot number from the observation header as "generation" so stale ids are caught.
To type: fill({index: K, text: "..."}) where K counts only the page's input and textarea fields, in page order.

AVAILABLE TOOLS:
- open_url: navigate to an absolute URL
- click: click an element by element_id
- fill: fill an input field
- press: press a keyboard key
- scroll: scroll the page (use sparingly)
- wait_for_navigation: wait for the page to load
- go_back: browser back button
- needs_human: ask the human (see rules above)

=== TYPICAL ORDERING WORKFLOW ===
1. Check whether you are logged in (look for account/profile elements)
2. If not logged in and the phone is not in your data: ask for it with needs_human
3. Navigate to the category using headings and buttons
4. Find the item by name in headings and element names
5. Add it to the cart and go to checkout
6. Fill the address from your data (home address + city)
7. Before the final payment button: STOP and ask for confirmation

=== RULES ===
- Use your data FIRST, never ask for data you already have
- Read PAGE HEADINGS to find categories and item names
- If an item is not visible, scroll down and read the fresh snapshot
- When the goal is done, reply with a short plain-text summary and no tool calls

REMEMBER: You are AUTONOMOUS. Make smart decisions. Check your data before asking!"""

    def __init__(
        self,
        config: AgentConfig,
        llm_client: Optional[LLMClient] = None,
        human: Optional[HumanInput] = None,
        profile: Optional[UserProfile] = None,
        session_factory: Optional[Callable[[AgentConfig, Optional[HumanInput]], BrowserSession]] = None,
        enable_console: bool = True,
    ):
        """Initialize the browser agent.

        Args:
            config: Agent configuration
            llm_client: Completion client (created from config if omitted)
            human: Human input collaborator; without one the agent never pauses
            profile: User profile (loaded from config.profile_path if omitted)
            session_factory: Builds the browser session (BrowserSession by default)
            enable_console: Whether the run logger prints to console
        """
        self.config = config
        self._owns_llm_client = llm_client is None
        self.llm_client = llm_client or LLMClient(config)
        self.human = human
        self.profile = profile if profile is not None else load_user_profile(config.profile_path)
        self._session_factory = session_factory or BrowserSession
        self._enable_console = enable_console

        self.run_logger: Optional[RunLogger] = None
        self.interrupts: Optional[InterruptPolicy] = None
        self.heuristics = LoopHeuristics()
        self.messages: list[dict[str, Any]] = []
        self._generation = 0

    def run(self, goal: Optional[str] = None) -> AgentResult:
        """Run the agent to accomplish the goal.

        Returns:
            AgentResult for a run that ended normally

        Raises:
            AgentRunError: On fatal failures (page closed, no model
                response, input stream closed)
        """
        goal = goal or self.config.goal
        self.config.ensure_directories()
        self.run_logger = RunLogger(goal, self.config.runs_dir, enable_console=self._enable_console)
        self.run_logger.print_header()
        self.interrupts = InterruptPolicy(self.human, on_secret=self.run_logger.register_secret)

        session = self._session_factory(self.config, self.human)
        try:
            page = session.open()
            return self._main_loop(goal, page)
        finally:
            session.close()
            if self._owns_llm_client:
                self.llm_client.close()

    def _main_loop(self, goal: str, page: Page) -> AgentResult:
        tools = BrowserTools(
            page,
            blocked_url_patterns=self.config.blocked_url_patterns,
            navigation_timeout=self.config.navigation_timeout,
        )

        page.goto("about:blank")

        self.messages = [
            {"role": "system", "content": self.SYSTEM_PROMPT},
            {"role": "user", "content": f"Goal: {goal}"},
        ]
        logger.info("Agent started, goal: %s", goal)
        observation = self._observe(page, tools)

        step = 0
        final_message: Optional[str] = None
        finished_reason = FinishReason.STEP_BUDGET_EXHAUSTED

        while step < self.config.max_steps:
            step += 1
            self.run_logger.print_thinking(step, self.config.max_steps)

            warning = self.heuristics.pre_step_warning()
            if warning:
                self.run_logger.print_warning(warning)
                self.messages.append({"role": "user", "content": warning})

            reply = self.llm_client.complete(self.messages, TOOL_SCHEMAS)
            if reply is None:
                self.run_logger.log_step(step, observation.url, observation.title, [], [], error="no response")
                self.run_logger.print_error("No response from the model")
                raise NoResponseError("The completion service returned no message")

            if reply.tool_calls:
                stop = self._run_tool_calls(step, reply, page, tools, observation)
                if stop:
                    finished_reason = FinishReason.HUMAN_ENDED
                    break

                try:
                    page.wait_for_load_state("load", timeout=3000)
                except Exception:
                    logger.debug("Page still loading after tool calls")
                observation = self._observe(page, tools)
                continue

            # The model replied in text: done, or it needs something
            text = reply.text
            self.run_logger.log_step(step, observation.url, observation.title, [], [], reply=text)
            if text:
                self.run_logger.print_agent_message(text)
            final_message = text or final_message

            answer = self.interrupts.handle_reply(text)
            if answer is None:
                finished_reason = FinishReason.AGENT_FINISHED
                break

            self.messages.append({"role": "assistant", "content": text})
            self.messages.append({"role": "user", "content": answer})
            logger.info("Continuing with human input")

        self.run_logger.print_summary(step, finished_reason.value)
        return AgentResult(
            success=finished_reason != FinishReason.STEP_BUDGET_EXHAUSTED,
            final_message=final_message,
            steps_taken=step,
            run_dir=self.run_logger.run_path,
            finished_reason=finished_reason,
        )

    def _run_tool_calls(
        self,
        step: int,
        reply: AssistantMessage,
        page: Page,
        tools: BrowserTools,
        observation: Observation,
    ) -> bool:
        """Execute a batch of tool calls in order.

        Returns:
            True if the human chose to end the run
        """
        self.messages.append(reply.to_transcript())

        outcomes: list[ToolOutcome] = []
        stop = False
        for call in reply.tool_calls:
            self.run_logger.print_tool_call(call.name, call.arguments)
            if call.name == NEEDS_HUMAN:
                outcome, stop = self._ask_human(call)
            else:
                outcome = tools.execute(call)

            self.heuristics.record(call.name, call.arguments)
            self.run_logger.print_result(outcome.ok, outcome.detail)
            self.messages.append({"role": "tool", "tool_call_id": call.id, "content": outcome.detail})
            outcomes.append(outcome)

            if page.is_closed():
                self._log_batch(step, observation, reply, outcomes, error="page closed")
                self.run_logger.print_error("The page closed, stopping the agent")
                raise PageClosedError("Page was closed during tool execution")

        self._log_batch(step, observation, reply, outcomes)

        warning = self.heuristics.post_batch_warning()
        if warning:
            self.run_logger.print_warning(warning)
            self.messages.append({"role": "user", "content": warning})

        return stop

    def _ask_human(self, call: ToolCall) -> tuple[ToolOutcome, bool]:
        """Route a needs_human call to the interrupt policy."""
        try:
            request = parse_arguments(NeedsHumanRequest, call.arguments)
        except (ValueError, ValidationError) as e:
            return ToolOutcome.failure(f"Invalid arguments for {NEEDS_HUMAN}: {e}", OutcomeKind.INVALID_ARGS), False

        answer = self.interrupts.handle_signal(request)
        if answer:
            return ToolOutcome(ok=True, detail=f"Human replied: {answer}"), False

        instruction = self.interrupts.ask_for_instruction()
        if instruction:
            return ToolOutcome.failure(
                f"The human did not provide the requested data. Their instruction: {instruction}"
            ), False
        return ToolOutcome.failure("The human did not provide the requested data and ended the run."), True

    def _observe(self, page: Page, tools: BrowserTools) -> Observation:
        """Capture a fresh snapshot, bind it to the tools and show it to the model."""
        self._generation += 1
        observation = capture_snapshot(page, self._generation)
        tools.bind_snapshot(observation)
        self.messages.append({"role": "user", "content": render_observation(observation, self.profile)})
        logger.debug(
            "Snapshot %d: %s (%d elements)",
            observation.generation, observation.url, len(observation.elements),
        )
        return observation

    def _log_batch(
        self,
        step: int,
        observation: Observation,
        reply: AssistantMessage,
        outcomes: list[ToolOutcome],
        error: Optional[str] = None,
    ) -> None:
        self.run_logger.log_step(
            step,
            observation.url,
            observation.title,
            [call.to_api() for call in reply.tool_calls],
            [outcome.to_dict() for outcome in outcomes],
            reply=reply.content,
            error=error,
        )
