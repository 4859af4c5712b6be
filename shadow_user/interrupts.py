"""
Human interrupt policy for Shadow User.

Decides when the agent must pause for a person (secret data, one-time
codes, confirmation of a critical step) and collects that person's answer.
The model can ask explicitly through the ``needs_human`` tool; free-text
replies are still classified by keyword as a fallback.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

from rich.console import Console
from rich.prompt import Prompt
from rich.text import Text

from .errors import InputChannelClosed
from .tool_schemas import InterruptCategory, NeedsHumanRequest

logger = logging.getLogger(__name__)


class HumanInput(ABC):
    """Collaborator that asks a person for one line of input."""

    @abstractmethod
    def prompt(self, text: str) -> str:
        """Show text and return the person's answer.

        Raises:
            InputChannelClosed: If the input stream is closed
        """


class ConsoleHumanInput(HumanInput):
    """Terminal input via Rich prompts.

    At most one request may be pending; once stdin reaches end of file
    every later request fails immediately.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self._lock = threading.Lock()
        self._closed = False

    def prompt(self, text: str) -> str:
        if self._closed:
            raise InputChannelClosed("Input stream closed")
        if not self._lock.acquire(blocking=False):
            raise RuntimeError("A human input request is already pending")
        try:
            # Text comes from the model or the page; never parse it as markup
            answer = Prompt.ask(Text(text), console=self.console, default="", show_default=False)
        except EOFError as e:
            self._closed = True
            raise InputChannelClosed("Input stream closed") from e
        finally:
            self._lock.release()
        return answer.strip()


_console_input: Optional[ConsoleHumanInput] = None


def get_console_input() -> ConsoleHumanInput:
    """Process-wide console input collaborator."""
    global _console_input
    if _console_input is None:
        _console_input = ConsoleHumanInput()
    return _console_input


class InterruptClassifier(ABC):
    """Maps a free-text model reply to the kinds of help it asks for."""

    @abstractmethod
    def classify(self, text: str) -> set[InterruptCategory]:
        pass


class KeywordInterruptClassifier(InterruptClassifier):
    """Legacy substring matcher over English and Russian keywords."""

    CREDENTIAL_KEYWORDS = (
        "логин", "пароль", "login", "password",
        "оплат", "payment",
        "телефон", "номер", "phone",
    )

    VERIFICATION_KEYWORDS = (
        "код", "sms", "смс", "otp", "однораз", "2fa", "двухфактор",
        "push", "пуш", "подтвержд", "verification",
    )

    def classify(self, text: str) -> set[InterruptCategory]:
        lowered = text.lower()
        categories = set()
        if any(kw in lowered for kw in self.CREDENTIAL_KEYWORDS):
            categories.add(InterruptCategory.CREDENTIALS)
        if any(kw in lowered for kw in self.VERIFICATION_KEYWORDS):
            categories.add(InterruptCategory.VERIFICATION)
        return categories


class InterruptPolicy:
    """Decides whether and how to ask the human, and returns their answer."""

    PROMPTS = {
        InterruptCategory.CREDENTIALS: "👤 Enter the requested data",
        InterruptCategory.VERIFICATION: "📲 Enter the code from SMS/app",
    }
    FALLBACK_PROMPT = "✏️ Extra instruction (Enter to finish)"

    def __init__(
        self,
        human: Optional[HumanInput] = None,
        classifier: Optional[InterruptClassifier] = None,
        on_secret: Optional[Callable[[str], None]] = None,
    ):
        """Initialize the policy.

        Args:
            human: Input collaborator; without one the agent never pauses
            classifier: Free-text classifier (keyword matcher by default)
            on_secret: Called with every answer given to a data request,
                so it can be kept out of the logs
        """
        self.human = human
        self.classifier = classifier or KeywordInterruptClassifier()
        self.on_secret = on_secret

    def select_category(self, text: str) -> Optional[InterruptCategory]:
        """Pick the prompt variant for a free-text reply.

        A verification request wins over a data request when both match.
        """
        categories = self.classifier.classify(text)
        if InterruptCategory.VERIFICATION in categories:
            return InterruptCategory.VERIFICATION
        if InterruptCategory.CREDENTIALS in categories:
            return InterruptCategory.CREDENTIALS
        return None

    def handle_reply(self, text: str) -> Optional[str]:
        """Handle a model turn that produced text instead of actions.

        Returns:
            The human's answer to append to the transcript, or None when
            the run should end
        """
        if self.human is None:
            return None

        category = self.select_category(text)
        if category is not None:
            logger.info("Model reply needs human %s input", category.value)
            answer = self._ask(self.PROMPTS[category], secret=True)
            if answer:
                return answer

        return self.ask_for_instruction()

    def handle_signal(self, request: NeedsHumanRequest) -> Optional[str]:
        """Handle an explicit ``needs_human`` request from the model.

        Returns:
            The human's answer, or None if nothing was given
        """
        if self.human is None:
            return None
        logger.info("Model requested human %s input", request.category.value)
        prompt = request.prompt.strip() or self.PROMPTS[request.category]
        return self._ask(prompt, secret=True)

    def ask_for_instruction(self) -> Optional[str]:
        """Offer the human a last chance to steer the agent before stopping."""
        if self.human is None:
            return None
        return self._ask(self.FALLBACK_PROMPT, secret=False)

    def _ask(self, prompt: str, secret: bool) -> Optional[str]:
        answer = self.human.prompt(prompt).strip()
        if not answer:
            return None
        if secret and self.on_secret:
            self.on_secret(answer)
        return answer
