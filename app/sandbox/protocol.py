"""Message protocol between a sandboxed lesson and its host page."""

from __future__ import annotations

from typing import Any

NAVIGATION_SIGNAL = "navigateToHome"

# Scripts only: no same-origin access, top navigation, forms or popups.
IFRAME_SANDBOX = "allow-scripts"


def is_navigation_signal(message: Any) -> bool:
  """Return True only for the exact string a lesson posts to leave the lesson."""
  return isinstance(message, str) and message == NAVIGATION_SIGNAL
