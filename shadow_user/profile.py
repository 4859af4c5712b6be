"""
User profile for Shadow User.

The profile is the agent's memory about the person it acts for: contact
data, saved addresses and ordering preferences. It is loaded once per run
and never written back.
"""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class Identity(BaseModel):
    name: str = ""
    phone: str = ""
    email: str = ""


class HomeLocation(BaseModel):
    address: str = ""
    city: str = ""
    apartment: str = ""
    floor: str = ""
    entrance: str = ""
    intercom: str = ""


class WorkLocation(BaseModel):
    address: str = ""
    city: str = ""


class Locations(BaseModel):
    home: HomeLocation = Field(default_factory=HomeLocation)
    work: WorkLocation = Field(default_factory=WorkLocation)


class FoodPreferences(BaseModel):
    dislikes: list[str] = Field(default_factory=list)
    likes: list[str] = Field(default_factory=list)
    dietary_restrictions: list[str] = Field(default_factory=list)
    budget_max: float = 0


class DeliveryPreferences(BaseModel):
    prefer_free_delivery: bool = False
    default_tip_percent: float = 0


class Preferences(BaseModel):
    food: FoodPreferences = Field(default_factory=FoodPreferences)
    delivery: DeliveryPreferences = Field(default_factory=DeliveryPreferences)


class Payment(BaseModel):
    preferred_method: str = ""
    saved_cards: list[Any] = Field(default_factory=list)


class UserProfile(BaseModel):
    """Static, read-only record of the person the agent acts for.

    ``UserProfile()`` is the documented empty default: every field is
    present and empty or zero.
    """

    model_config = {"frozen": True}

    identity: Identity = Field(default_factory=Identity)
    locations: Locations = Field(default_factory=Locations)
    preferences: Preferences = Field(default_factory=Preferences)
    payment: Payment = Field(default_factory=Payment)


def load_user_profile(path: Path) -> UserProfile:
    """Load the user profile from a JSON file.

    A missing, unreadable or malformed file never aborts startup; the
    empty default profile is returned and the problem is logged.

    Args:
        path: Path to the profile JSON file

    Returns:
        The loaded profile, or ``UserProfile()`` on any failure
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        profile = UserProfile.model_validate(data)
    except FileNotFoundError:
        logger.warning("User profile %s not found, using empty profile", path)
        return UserProfile()
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.warning("User profile %s is unusable (%s), using empty profile", path, e)
        return UserProfile()

    logger.info("User profile loaded from %s", path)
    return profile
