"""
Configuration management for Shadow User.

Provides configuration dataclass and environment variable loading.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file if present
load_dotenv()


def get_base_dir() -> Path:
    """Get the base directory for shadow user data."""
    return Path.home() / ".shadow_user"


def get_runs_dir() -> Path:
    """Get the directory for run logs."""
    return get_base_dir() / "runs"


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _remote_debug_url() -> Optional[str]:
    url = os.getenv("CHROME_REMOTE_DEBUG_URL")
    if url:
        return url
    port = os.getenv("CHROME_REMOTE_DEBUG_PORT")
    if port:
        return f"http://localhost:{port}"
    return None


class DialogPolicy(str, Enum):
    """How native browser dialogs (alert/confirm/prompt) are handled."""
    ACCEPT = "accept"
    DISMISS = "dismiss"
    ESCALATE = "escalate"


@dataclass
class AgentConfig:
    """Configuration for the browser agent."""

    # Goal to accomplish
    goal: str = ""

    # Browser settings
    headless: bool = field(default_factory=lambda: _env_flag("HEADLESS"))
    chrome_executable: Optional[str] = field(
        default_factory=lambda: os.getenv("CHROME_EXECUTABLE")
    )
    chrome_profile_dir: Path = field(
        default_factory=lambda: Path(
            os.getenv("CHROME_PROFILE_DIR", str(get_base_dir() / "chrome-profile"))
        )
    )
    remote_debug_url: Optional[str] = field(default_factory=_remote_debug_url)
    viewport_width: int = 1400
    viewport_height: int = 900

    # Agent settings
    max_steps: int = 100
    dialog_policy: DialogPolicy = field(
        default_factory=lambda: DialogPolicy(os.getenv("SHADOW_USER_DIALOGS", "accept"))
    )

    # LLM settings
    model_endpoint: str = field(
        default_factory=lambda: os.getenv(
            "SHADOW_USER_ENDPOINT",
            "https://api.openai.com/v1"
        )
    )
    model: str = field(
        default_factory=lambda: os.getenv("SHADOW_USER_MODEL", "gpt-4o")
    )
    api_key: Optional[str] = field(
        default_factory=lambda: os.getenv("SHADOW_USER_API_KEY") or os.getenv("OPENAI_API_KEY")
    )
    temperature: float = 0.2

    # User profile location
    profile_path: Path = field(
        default_factory=lambda: Path(os.getenv("SHADOW_USER_PROFILE", "user-profile.json"))
    )

    # Navigation guard: URLs matching these patterns are never opened
    blocked_url_patterns: list[str] = field(
        default_factory=lambda: [r"samokat\.ru/login"]
    )

    # Timeouts (ms)
    navigation_timeout: int = 15000

    # Run artifacts
    runs_dir: Path = field(default_factory=get_runs_dir)

    # Debug mode - enables verbose logging (off by default)
    debug: bool = field(default_factory=lambda: _env_flag("SHADOW_USER_DEBUG", ""))

    @property
    def attaches_to_running_browser(self) -> bool:
        """Whether the run borrows an already-running Chrome over CDP."""
        return bool(self.remote_debug_url)

    def ensure_directories(self) -> None:
        """Ensure all required directories exist."""
        self.runs_dir.mkdir(parents=True, exist_ok=True)

        if not self.attaches_to_running_browser:
            self.chrome_profile_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_cli_args(
        cls,
        goal: str,
        headless: bool = False,
        max_steps: int = 100,
        model_endpoint: Optional[str] = None,
        model: Optional[str] = None,
        profile_file: Optional[str] = None,
        dialogs: Optional[str] = None,
        cdp_url: Optional[str] = None,
        debug: bool = False,
    ) -> "AgentConfig":
        """Create configuration from CLI arguments.

        Values not given on the command line keep their environment
        defaults.
        """
        config = cls(goal=goal, max_steps=max_steps)
        if headless:
            config.headless = True
        if model_endpoint:
            config.model_endpoint = model_endpoint
        if model:
            config.model = model
        if profile_file:
            config.profile_path = Path(profile_file)
        if dialogs:
            config.dialog_policy = DialogPolicy(dialogs)
        if cdp_url:
            config.remote_debug_url = cdp_url
        if debug:
            config.debug = True
        return config


# Default configuration values for documentation
DEFAULTS = {
    "headless": False,
    "max_steps": 100,
    "model_endpoint": "https://api.openai.com/v1",
    "model": "gpt-4o",
    "profile_file": "user-profile.json",
    "dialogs": DialogPolicy.ACCEPT.value,
    "navigation_timeout_ms": 15000,
}
