"""Build the isolated document that runs a compiled lesson."""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from urllib.parse import urlparse

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from app.compiler.transformer import ENTRY_POINT
from app.config import Settings
from app.sandbox.protocol import IFRAME_SANDBOX

_TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
_TEMPLATE_NAME = "lesson_sandbox.html.j2"


@dataclass(frozen=True)
class SandboxDocument:
  """Rendered sandbox HTML plus the isolation attributes it must be served with."""

  html: str
  iframe_sandbox: str
  content_security_policy: str

  def headers(self) -> dict[str, str]:
    # The CSP sandbox directive keeps the document isolated even when opened directly.
    return {"Content-Security-Policy": f"{self.content_security_policy}; sandbox {self.iframe_sandbox}", "X-Content-Type-Options": "nosniff", "Referrer-Policy": "no-referrer", "Cache-Control": "no-store", "X-Frame-Options": "SAMEORIGIN"}


@lru_cache(maxsize=1)
def _environment() -> Environment:
  return Environment(loader=FileSystemLoader(str(_TEMPLATE_DIR)), autoescape=select_autoescape(enabled_extensions=("html", "j2"), default=True))


def _script_source(url: str) -> str:
  """Return the exact-file CSP source for a runtime URL; nothing else on its host may load."""
  parsed = urlparse(url)
  if parsed.scheme not in {"https", "http"} or not parsed.netloc:
    raise ValueError(f"Sandbox runtime URL must be absolute http(s): {url}")
  if parsed.query or parsed.fragment or not parsed.path.strip("/") or parsed.path.endswith("/") or any(char in url for char in " ;,'\"\t\n"):
    raise ValueError(f"Sandbox runtime URL must name a single file: {url}")
  return f"{parsed.scheme}://{parsed.netloc}{parsed.path}"


def escape_script_body(code: str) -> str:
  """Keep compiled code from closing the surrounding script element."""
  return code.replace("</", "<\\/").replace("<!--", "<\\!--")


class SandboxExecutor:
  """Render compiled lessons into a pinned-runtime document with an error guard."""

  def __init__(self, *, react_url: str, react_dom_url: str, tailwind_url: str) -> None:
    self._react_url = react_url
    self._react_dom_url = react_dom_url
    self._tailwind_url = tailwind_url
    self._script_sources = tuple(dict.fromkeys(_script_source(url) for url in (react_url, react_dom_url, tailwind_url)))

  @classmethod
  def from_settings(cls, settings: Settings) -> SandboxExecutor:
    return cls(react_url=settings.sandbox_react_url, react_dom_url=settings.sandbox_react_dom_url, tailwind_url=settings.sandbox_tailwind_url)

  def content_security_policy(self, nonce: str) -> str:
    script_sources = " ".join((f"'nonce-{nonce}'",) + self._script_sources)
    directives = (
      "default-src 'none'",
      f"script-src {script_sources}",
      "style-src 'unsafe-inline'",
      "img-src data: https:",
      "font-src data: https:",
      "media-src data: https:",
      "connect-src 'none'",
      "base-uri 'none'",
      "form-action 'none'",
    )
    return "; ".join(directives)

  def build(self, compiled_code: str, *, title: str = "Lesson") -> SandboxDocument:
    """Render the document for one compiled lesson; each render gets a fresh nonce."""
    nonce = secrets.token_urlsafe(16)
    policy = self.content_security_policy(nonce)
    template = _environment().get_template(_TEMPLATE_NAME)
    html = template.render(
      title=title,
      nonce=nonce,
      content_security_policy=policy,
      react_url=self._react_url,
      react_dom_url=self._react_dom_url,
      tailwind_url=self._tailwind_url,
      entry_point=Markup(ENTRY_POINT),
      code=Markup(escape_script_body(compiled_code)),
    )
    return SandboxDocument(html=html, iframe_sandbox=IFRAME_SANDBOX, content_security_policy=policy)
