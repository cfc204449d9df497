from __future__ import annotations

import asyncio
import json

import pytest
from app.api.routes import compilation
from app.compiler.service import compile_source
from app.main import app
from app.services.quotas import QuotaGuard
from fastapi.testclient import TestClient
from tests.fakes import VALID_COMPONENT


@pytest.fixture
def client() -> TestClient:
  app.state.compile_quota = QuotaGuard(name="compile", cleanup_probability=0.0)
  return TestClient(app)


def test_compile_returns_executable_code(client: TestClient) -> None:
  response = client.post("/v1/compile", json={"code": VALID_COMPONENT})

  assert response.status_code == 200
  body = response.json()
  assert body["success"] is True
  assert body["warnings"] == []
  assert "function LessonComponent()" in body["compiledCode"]
  assert "React.createElement" in body["compiledCode"]
  assert "<button" not in body["compiledCode"]
  assert response.headers["x-ratelimit-limit"] == "30"


def test_compile_reports_warnings_without_failing(client: TestClient) -> None:
  source = VALID_COMPONENT.replace("const step = steps[index];", "const step = steps[index;")
  response = client.post("/v1/compile", json={"code": source})

  assert response.status_code == 200
  assert response.json()["warnings"]


def test_compile_rejects_short_code(client: TestClient) -> None:
  response = client.post("/v1/compile", json={"code": "const a = 1;"})

  assert response.status_code == 400
  assert response.json()["kind"] == "compilation_failed"


def test_compile_rejects_oversized_code(client: TestClient) -> None:
  response = client.post("/v1/compile", json={"code": "x" * 600_000})

  assert response.status_code == 413
  assert response.json()["detail"] == "Code is too large (600KB). Maximum allowed: 500KB"


def test_compile_rejects_foreign_imports(client: TestClient) -> None:
  source = VALID_COMPONENT.replace('import { useState } from "react";', 'import { useState } from "react";\nimport { motion } from "framer-motion";')
  response = client.post("/v1/compile", json={"code": source})

  assert response.status_code == 400
  assert '"framer-motion"' in response.json()["detail"]


def test_compile_rejects_unpaired_surrogates(client: TestClient) -> None:
  body = json.dumps({"code": VALID_COMPONENT + "\ud800"})
  response = client.post("/v1/compile", content=body, headers={"content-type": "application/json"})

  assert response.status_code == 400
  assert response.json()["kind"] == "compilation_failed"
  assert response.json()["detail"].startswith("Code contains an invalid character at line ")


def test_compile_rejects_unsafe_output(client: TestClient) -> None:
  source = VALID_COMPONENT.replace("const step = steps[index];", "const step = steps[index];\n  document.write(step.title);")
  response = client.post("/v1/compile", json={"code": source})

  assert response.status_code == 500
  assert response.json()["kind"] == "compilation_failed"


def test_compile_requires_code_field(client: TestClient) -> None:
  response = client.post("/v1/compile", json={})

  assert response.status_code == 422
  assert response.json()["error"] == "Invalid request"


def test_compile_is_rate_limited(client: TestClient) -> None:
  for _ in range(30):
    assert client.post("/v1/compile", json={"code": VALID_COMPONENT}).status_code == 200

  response = client.post("/v1/compile", json={"code": VALID_COMPONENT})

  assert response.status_code == 429
  assert "retry-after" in response.headers


def test_health_and_request_headers(client: TestClient) -> None:
  response = client.get("/health")

  assert response.status_code == 200
  assert response.json()["status"] == "ok"
  assert response.headers["x-content-type-options"] == "nosniff"
  assert response.headers["x-request-id"]


def _has_running_loop() -> bool:
  try:
    asyncio.get_running_loop()
  except RuntimeError:
    return False
  return True


def test_compile_runs_outside_the_event_loop(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
  loop_states = []

  def _tracking_compile(*args, **kwargs):
    loop_states.append(_has_running_loop())
    return compile_source(*args, **kwargs)

  monkeypatch.setattr(compilation, "compile_source", _tracking_compile)

  assert client.post("/v1/compile", json={"code": VALID_COMPONENT}).status_code == 200
  assert loop_states == [False]
