"""
Page observation for Shadow User.

Captures a compact, structured snapshot of the current page and renders
it (together with the user profile) into the text block the model reads
each step.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional

from playwright.sync_api import Page

from .profile import UserProfile
from .utils import format_number

logger = logging.getLogger(__name__)


# Shared by the snapshot and by the tools that re-query elements, so that
# element_id N in an observation is element N of a fresh query.
INTERACTIVE_SELECTOR = (
    'a, button, input, textarea, select, [role="button"], [role="combobox"], '
    '[onclick], [tabindex], [data-id], [data-product], [data-item], '
    'div[class*="card"], div[class*="item"], div[class*="product"]'
)

FILLABLE_SELECTOR = "input, textarea"

MAX_HEADINGS = 30
MAX_ELEMENTS = 50
MAX_NAME_CHARS = 80

# How a single element is named and typed. Used as an element-level
# evaluate() by the tools to verify a remembered descriptor.
DESCRIBE_ELEMENT_JS = f"""
(el) => {{
    let text = (el.textContent || '').trim();
    if (el instanceof HTMLInputElement || el instanceof HTMLTextAreaElement) {{
        text = el.placeholder || el.value || el.name || '';
    }}
    return {{
        role: el.getAttribute('role') || el.tagName.toLowerCase(),
        name: text.slice(0, {MAX_NAME_CHARS}),
    }};
}}
"""

_HEADINGS_JS = f"""
() => Array.from(document.querySelectorAll('h1, h2, h3, h4'))
    .map(el => (el.textContent || '').trim())
    .filter(t => t && t.length > 2)
    .slice(0, {MAX_HEADINGS})
"""

_ELEMENTS_JS = f"""
(selector) => {{
    const describe = {DESCRIBE_ELEMENT_JS};
    const all = Array.from(document.querySelectorAll(selector));
    const viewportHeight = window.innerHeight;
    const viewportWidth = window.innerWidth;

    const elements = [];
    all.forEach((el, idx) => {{
        const rect = el.getBoundingClientRect();
        const style = window.getComputedStyle(el);

        const isVisible =
            rect.width > 0 &&
            rect.height > 0 &&
            style.display !== 'none' &&
            style.visibility !== 'hidden' &&
            style.opacity !== '0';

        // Viewport plus 500px below and 100px above, full width
        const nearViewport =
            rect.top < viewportHeight + 500 &&
            rect.bottom > -100 &&
            rect.left < viewportWidth &&
            rect.right > 0;

        if (!isVisible || !nearViewport) return;

        const info = describe(el);
        if (!info.name && info.role !== 'button' && info.role !== 'link') return;

        elements.push({{
            element_id: idx,
            role: info.role,
            name: info.name,
            value: el instanceof HTMLInputElement ? (el.value || '') : '',
        }});
    }});

    return {{ candidate_count: all.length, elements: elements.slice(0, {MAX_ELEMENTS}) }};
}}
"""


@dataclass(frozen=True)
class ElementDescriptor:
    """One interactive element as shown to the model."""
    element_id: int
    role: str
    name: str
    value: Optional[str] = None

    def to_dict(self) -> dict:
        """Compact JSON form; value only when non-empty."""
        data = {
            "element_id": self.element_id,
            "role": self.role,
            "name": self.name,
        }
        if self.value:
            data["value"] = self.value
        return data


@dataclass(frozen=True)
class Observation:
    """Structured snapshot of the page at one point of the run.

    ``generation`` increases with every capture in a run and binds the
    element ids to the snapshot they were computed from.
    """
    url: str
    title: str
    headings: tuple[str, ...] = ()
    elements: tuple[ElementDescriptor, ...] = ()
    generation: int = 0
    candidate_count: int = 0

    def element(self, element_id: int) -> Optional[ElementDescriptor]:
        """Look up a descriptor by its element_id."""
        for descriptor in self.elements:
            if descriptor.element_id == element_id:
                return descriptor
        return None


def capture_snapshot(page: Page, generation: int = 0) -> Observation:
    """Read the current page into an Observation.

    Never raises: any capture error degrades to an Observation that only
    has url and title, after a longer wait for the page to load.

    Args:
        page: Playwright page
        generation: Generation id to stamp on the snapshot

    Returns:
        Observation of the page
    """
    try:
        try:
            page.wait_for_load_state("domcontentloaded", timeout=2000)
        except Exception:
            logger.debug("domcontentloaded not reached, capturing anyway")

        url = page.url
        title = page.title()
        headings = page.evaluate(_HEADINGS_JS) or []
        result = page.evaluate(_ELEMENTS_JS, INTERACTIVE_SELECTOR) or {}

        elements = tuple(
            ElementDescriptor(
                element_id=int(item["element_id"]),
                role=str(item.get("role", "")),
                name=str(item.get("name", ""))[:MAX_NAME_CHARS],
                value=item.get("value") or None,
            )
            for item in result.get("elements", [])[:MAX_ELEMENTS]
        )

        return Observation(
            url=url,
            title=title,
            headings=tuple(str(h) for h in headings[:MAX_HEADINGS]),
            elements=elements,
            generation=generation,
            candidate_count=int(result.get("candidate_count", len(elements))),
        )
    except Exception as e:
        logger.warning("Snapshot capture failed (%s), falling back to minimal observation", e)
        return _minimal_snapshot(page, generation)


def _minimal_snapshot(page: Page, generation: int) -> Observation:
    try:
        page.wait_for_load_state("load", timeout=5000)
    except Exception:
        logger.debug("Page did not reach load state")

    try:
        url = page.url
    except Exception:
        url = ""
    try:
        title = page.title()
    except Exception:
        title = ""

    return Observation(url=url, title=title, generation=generation)


def render_observation(obs: Observation, profile: UserProfile) -> str:
    """Render an observation and the user's available data as text.

    Pure and deterministic: the same inputs always give the same string.
    Only non-empty profile fields are listed, so the model is told exactly
    which data it does not need to ask the human for.
    """
    lines: list[str] = []
    lines.append(f"URL: {obs.url}")
    lines.append(f"Title: {obs.title}")
    lines.append(f"Snapshot: {obs.generation}")
    lines.append("")

    if obs.headings:
        lines.append("=== PAGE HEADINGS ===")
        for heading in obs.headings:
            lines.append(f"  {heading}")
        lines.append("")

    lines.append("=== YOUR AVAILABLE DATA ===")
    lines.extend(_available_data_lines(profile))
    lines.append("")

    if obs.elements:
        lines.append("=== INTERACTIVE ELEMENTS (Semantic Tree) ===")
        lines.append("Use element_id to click: click({index: N})")
        lines.append("")
        for element in obs.elements:
            lines.append(json.dumps(element.to_dict(), ensure_ascii=False))
    else:
        lines.append("No interactive elements found.")

    return "\n".join(lines)


def _available_data_lines(profile: UserProfile) -> list[str]:
    identity = profile.identity
    home = profile.locations.home
    budget = profile.preferences.food.budget_max

    lines = []
    if identity.phone:
        lines.append(f"Phone: {identity.phone}")
    if identity.email:
        lines.append(f"Email: {identity.email}")
    if home.address:
        address = f"{home.address}, {home.city}" if home.city else home.address
        lines.append(f"Home: {address}")
    if budget:
        lines.append(f"Budget: up to {format_number(budget)}")
    return lines
