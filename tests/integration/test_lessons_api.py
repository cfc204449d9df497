from __future__ import annotations

import asyncio
import datetime

import pytest
from app.ai.agents import CodeWriterAgent, RepairerAgent, TitleAgent
from app.ai.orchestrator import OrchestrationResult, RepairOrchestrator
from app.api.deps import get_lessons_repo, get_orchestrator
from app.api.routes import lessons as lesson_routes
from app.compiler.service import compile_source
from app.main import app
from app.services.quotas import QuotaGuard
from app.storage.lessons_repo import LessonRecord
from fastapi.testclient import TestClient
from tests.fakes import MISSING_EXPORT_COMPONENT, VALID_COMPONENT, InMemoryLessonsRepository, ScriptedModel

OUTLINE = "Explain photosynthesis with an interactive diagram"


class _StaticOrchestrator:
  """Orchestrator double that accepts every outline with the same component."""

  def __init__(self) -> None:
    self.requests = []

  async def generate_lesson(self, request):
    self.requests.append(request)
    return OrchestrationResult(code=VALID_COMPONENT.strip(), title="Photosynthesis", attempts=1)


def _scripted_orchestrator(code_model: ScriptedModel, title_responses=()) -> RepairOrchestrator:
  return RepairOrchestrator(
    writer=CodeWriterAgent(model=code_model, prov="scripted", delays=(0,)),
    repairer=RepairerAgent(model=code_model, prov="scripted", delays=(0,)),
    titler=TitleAgent(model=ScriptedModel(title_responses), prov="scripted") if title_responses else None,
  )


def _seed(repo: InMemoryLessonsRepository, lesson_id: str, status: str, *, minutes_ago: int = 0, **extra) -> LessonRecord:
  stamp = datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(minutes=minutes_ago)
  return repo.seed(LessonRecord(lesson_id=lesson_id, title=f"Lesson {lesson_id}", outline=f"Outline for {lesson_id}", status=status, created_at=stamp, updated_at=stamp, **extra))


@pytest.fixture
def lessons_repo() -> InMemoryLessonsRepository:
  return InMemoryLessonsRepository()


@pytest.fixture
def client(lessons_repo: InMemoryLessonsRepository):
  app.state.generation_quota = QuotaGuard(name="generation", cleanup_probability=0.0)
  app.state.compile_quota = QuotaGuard(name="compile", cleanup_probability=0.0)
  app.dependency_overrides[get_lessons_repo] = lambda: lessons_repo
  app.dependency_overrides[get_orchestrator] = _StaticOrchestrator
  try:
    yield TestClient(app)
  finally:
    app.dependency_overrides.clear()


def test_generate_creates_lesson_and_completes_in_background(client: TestClient, lessons_repo: InMemoryLessonsRepository) -> None:
  response = client.post("/v1/lessons/generate", json={"outline": f"  {OUTLINE}  "})

  assert response.status_code == 200
  lesson = response.json()["lesson"]
  assert lesson["status"] == "generating"
  assert lesson["title"] == "Generating..."
  assert lesson["outline"] == OUTLINE
  assert lesson["generated_content"] is None
  assert response.headers["x-ratelimit-limit"] == "5"
  assert response.headers["x-ratelimit-remaining"] == "4"

  stored = client.get(f"/v1/lessons/{lesson['id']}").json()
  assert stored["status"] == "generated"
  assert stored["title"] == "Photosynthesis"
  assert stored["generated_content"] == VALID_COMPONENT.strip()
  assert stored["error_message"] is None


def test_generate_repairs_invalid_draft_end_to_end(client: TestClient) -> None:
  app.dependency_overrides[get_orchestrator] = lambda: _scripted_orchestrator(ScriptedModel([MISSING_EXPORT_COMPONENT, VALID_COMPONENT]), ["Photosynthesis Basics"])

  lesson_id = client.post("/v1/lessons/generate", json={"outline": OUTLINE}).json()["lesson"]["id"]

  stored = client.get(f"/v1/lessons/{lesson_id}").json()
  assert stored["status"] == "generated"
  assert stored["title"] == "Photosynthesis Basics"
  assert "export default function PhotosynthesisLesson" in stored["generated_content"]


def test_generate_records_validation_failure(client: TestClient) -> None:
  code_model = ScriptedModel([MISSING_EXPORT_COMPONENT] * 4)
  app.dependency_overrides[get_orchestrator] = lambda: _scripted_orchestrator(code_model)

  lesson_id = client.post("/v1/lessons/generate", json={"outline": OUTLINE}).json()["lesson"]["id"]

  status_body = client.get(f"/v1/lessons/{lesson_id}/status").json()
  assert status_body["exists"] is True
  assert status_body["status"] == "failed"
  assert status_body["error_message"].startswith("Code validation failed after 3 attempts.")
  assert client.get(f"/v1/lessons/{lesson_id}").json()["generated_content"] is None
  assert code_model.calls == 3


def test_generate_requires_outline(client: TestClient) -> None:
  response = client.post("/v1/lessons/generate", json={"outline": "   "})
  assert response.status_code == 400
  assert response.json()["detail"] == "Lesson outline is required"


def test_generate_rejects_malformed_body(client: TestClient) -> None:
  assert client.post("/v1/lessons/generate", json={}).status_code == 422
  assert client.post("/v1/lessons/generate", json={"outline": 42}).status_code == 422


def test_generate_rejects_inadmissible_outline(client: TestClient, lessons_repo: InMemoryLessonsRepository) -> None:
  response = client.post("/v1/lessons/generate", json={"outline": "blah blah blah"})

  assert response.status_code == 400
  body = response.json()
  assert body["kind"] == "admission_rejected"
  assert body["stage"] == "educational_intent"
  assert body["suggestion"]
  assert lessons_repo.records == {}


def test_generate_reports_recent_duplicate(client: TestClient) -> None:
  first = client.post("/v1/lessons/generate", json={"outline": OUTLINE}).json()["lesson"]

  response = client.post("/v1/lessons/generate", json={"outline": OUTLINE})

  assert response.status_code == 409
  body = response.json()
  assert body["existing_lesson_id"] == first["id"]
  assert body["error"] == "This lesson was recently generated. Check your lesson list."


def test_generate_duplicate_of_in_flight_lesson(client: TestClient, lessons_repo: InMemoryLessonsRepository) -> None:
  existing = _seed(lessons_repo, "in-flight", "generating")

  response = client.post("/v1/lessons/generate", json={"outline": existing.outline})

  assert response.status_code == 409
  assert response.json()["error"].startswith("A similar lesson is already being generated.")


def test_failed_lessons_do_not_block_regeneration(client: TestClient, lessons_repo: InMemoryLessonsRepository) -> None:
  existing = _seed(lessons_repo, "failed-one", "failed", error_message="Generation timeout after 10 minutes")

  response = client.post("/v1/lessons/generate", json={"outline": existing.outline})

  assert response.status_code == 200


def test_generate_is_rate_limited(client: TestClient) -> None:
  for index in range(5):
    assert client.post("/v1/lessons/generate", json={"outline": f"Explain chapter {index} of cell biology"}).status_code == 200

  response = client.post("/v1/lessons/generate", json={"outline": "Explain chapter 6 of cell biology"})

  assert response.status_code == 429
  body = response.json()
  assert body["error"] == "Rate limit exceeded"
  assert body["kind"] == "quota_exceeded"
  assert body["retryAfter"] == int(response.headers["retry-after"])
  assert body["detail"].startswith("Too many requests. Maximum 5 requests per minute.")
  assert response.headers["x-ratelimit-remaining"] == "0"


def test_list_lessons_paginates_and_filters(client: TestClient, lessons_repo: InMemoryLessonsRepository) -> None:
  _seed(lessons_repo, "a", "generated", minutes_ago=3, generated_content=VALID_COMPONENT)
  _seed(lessons_repo, "b", "generated", minutes_ago=2, generated_content=VALID_COMPONENT)
  _seed(lessons_repo, "c", "failed", minutes_ago=1, error_message="boom")

  response = client.get("/v1/lessons", params={"status": "generated", "limit": 1})

  assert response.status_code == 200
  body = response.json()
  assert [lesson["id"] for lesson in body["lessons"]] == ["b"]
  assert body["pagination"] == {"page": 1, "limit": 1, "total": 2, "total_pages": 2, "has_next": True, "has_prev": False}

  ascending = client.get("/v1/lessons", params={"sort_order": "asc"}).json()
  assert [lesson["id"] for lesson in ascending["lessons"]] == ["a", "b", "c"]


def test_list_lessons_validates_query(client: TestClient) -> None:
  assert client.get("/v1/lessons", params={"limit": 101}).status_code == 422
  assert client.get("/v1/lessons", params={"status": "archived"}).status_code == 422


def test_stats_count_each_status(client: TestClient, lessons_repo: InMemoryLessonsRepository) -> None:
  _seed(lessons_repo, "a", "generated", generated_content=VALID_COMPONENT)
  _seed(lessons_repo, "b", "generating")
  _seed(lessons_repo, "c", "failed", error_message="boom")

  assert client.get("/v1/lessons/stats").json() == {"total": 3, "generating": 1, "generated": 1, "failed": 1}


def test_unknown_lesson(client: TestClient) -> None:
  response = client.get("/v1/lessons/missing")
  assert response.status_code == 404
  assert response.json()["detail"] == "Lesson not found"
  assert client.get("/v1/lessons/missing/status").json() == {"exists": False, "status": None, "error_message": None}


def test_sandbox_requires_generated_lesson(client: TestClient, lessons_repo: InMemoryLessonsRepository) -> None:
  _seed(lessons_repo, "pending", "generating")

  response = client.get("/v1/lessons/pending/sandbox")

  assert response.status_code == 409
  assert response.json()["status"] == "generating"
  assert client.get("/v1/lessons/missing/sandbox").status_code == 404


def test_sandbox_serves_isolated_document(client: TestClient, lessons_repo: InMemoryLessonsRepository) -> None:
  _seed(lessons_repo, "ready", "generated", generated_content=VALID_COMPONENT)

  response = client.get("/v1/lessons/ready/sandbox")

  assert response.status_code == 200
  assert response.headers["content-type"].startswith("text/html")
  assert response.headers["content-security-policy"].endswith("sandbox allow-scripts")
  assert response.headers["cache-control"] == "no-store"
  assert "React.createElement(LessonComponent)" in response.text
  assert "navigateToHome" in response.text


def test_lessons_unavailable_without_database() -> None:
  app.dependency_overrides[get_orchestrator] = _StaticOrchestrator
  try:
    response = TestClient(app).get("/v1/lessons/stats")
  finally:
    app.dependency_overrides.clear()

  assert response.status_code == 503


def test_sandbox_compiles_outside_the_event_loop(client: TestClient, lessons_repo: InMemoryLessonsRepository, monkeypatch: pytest.MonkeyPatch) -> None:
  _seed(lessons_repo, "ready", "generated", generated_content=VALID_COMPONENT)
  loop_states = []

  def _tracking_compile(*args, **kwargs):
    try:
      asyncio.get_running_loop()
    except RuntimeError:
      loop_states.append(False)
    else:
      loop_states.append(True)
    return compile_source(*args, **kwargs)

  monkeypatch.setattr(lesson_routes, "compile_source", _tracking_compile)

  assert client.get("/v1/lessons/ready/sandbox").status_code == 200
  assert loop_states == [False]


def test_sandbox_views_share_the_compile_window(client: TestClient, lessons_repo: InMemoryLessonsRepository) -> None:
  _seed(lessons_repo, "ready", "generated", generated_content=VALID_COMPONENT)
  for _ in range(30):
    assert client.get("/v1/lessons/ready/sandbox").status_code == 200

  response = client.get("/v1/lessons/ready/sandbox")

  assert response.status_code == 429
  assert response.json()["kind"] == "quota_exceeded"
  assert client.post("/v1/compile", json={"code": VALID_COMPONENT}).status_code == 429
