"""Custom JSON handling."""

from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any

from fastapi.responses import JSONResponse


class LessonJSONEncoder(json.JSONEncoder):
  """JSON encoder that renders timestamps and tuples from lesson records."""

  def default(self, obj: Any) -> Any:
    if isinstance(obj, datetime | date):
      return obj.isoformat()
    if isinstance(obj, frozenset | set):
      return sorted(obj)
    return super().default(obj)


class LessonJSONResponse(JSONResponse):
  """JSONResponse that uses LessonJSONEncoder."""

  def render(self, content: Any) -> bytes:
    return json.dumps(content, ensure_ascii=False, allow_nan=False, indent=None, separators=(",", ":"), cls=LessonJSONEncoder).encode("utf-8")
