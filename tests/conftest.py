import sys
import os

import pytest

# Ensure repo root on sys.path for imports like `cbse_tutor...`
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from fakesupabase import FakeSupabase  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fake_supabase(monkeypatch):
    """Point every repository at one in-memory Supabase."""
    from cbse_tutor.features.assessments import repository as assessment_repo_module
    from cbse_tutor.features.progression import repository as progression_repo_module

    fake = FakeSupabase(
        {
            "subject_progress": [
                {"id": "subj-math", "user_id": "user-1", "subject": "Mathematics", "status": "getting_to_know_you", "mastery_percentage": 0},
                {"id": "subj-sci", "user_id": "user-1", "subject": "Science", "status": "lets_bridge_gaps", "mastery_percentage": 55},
            ],
            "assessment_questions": [
                {"id": "q1", "subject_id": "subj-math", "concept": "Quadratic Equations", "correct_answer": 1, "order_index": 1},
                {"id": "q2", "subject_id": "subj-math", "concept": "Quadratic Equations", "correct_answer": 0, "order_index": 2},
                {"id": "q3", "subject_id": "subj-math", "concept": "Polynomials", "correct_answer": 2, "order_index": 3},
                {"id": "q4", "subject_id": "subj-math", "concept": None, "correct_answer": 3, "order_index": 4},
            ],
        }
    )

    async def fake_get_supabase():
        return fake

    monkeypatch.setattr(assessment_repo_module, "get_supabase", fake_get_supabase)
    monkeypatch.setattr(progression_repo_module, "get_supabase", fake_get_supabase)
    return fake
