"""
Shadow User - an autonomous browser agent.

Drives Chromium via Playwright toward a natural-language goal, asking an
LLM to pick one browser action per step and pausing for a human only
when secret data or a critical confirmation is needed.
"""

__version__ = "0.1.0"
__author__ = "Shadow User Contributors"
