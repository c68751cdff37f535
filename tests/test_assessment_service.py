from datetime import date

import pytest

from cbse_tutor.features.assessments.schemas import Answer, SubjectStatus
from cbse_tutor.features.progression.service import ProgressionConflictError
from cbse_tutor.features.assessments.service import (
    AssessmentService,
    QuestionSetNotFoundError,
    SubjectNotFoundError,
)

pytestmark = pytest.mark.anyio("asyncio")

DAY = date(2025, 11, 14)


def _answers(selections):
    out = {}
    for qid, selected in selections.items():
        out[qid] = Answer(question_id=qid, selected_option_index=selected, time_spent_seconds=15)
    return out


@pytest.mark.anyio("asyncio")
async def test_submit_grades_persists_and_awards_xp(fake_supabase):
    service = AssessmentService()

    resp = await service.submit(
        "user-1",
        "subj-math",
        _answers({"q1": 1, "q2": 0, "q3": 0, "q4": None}),
        activity_date=DAY,
    )

    assert resp.result.score_percent == 50
    assert resp.result.skipped_answers == 1
    assert resp.result.learning_path == ["Polynomials", "General Concepts", "Quadratic Equations"]
    assert resp.status == SubjectStatus.lets_bridge_gaps
    assert resp.saved is True

    subject = next(r for r in fake_supabase.tables["subject_progress"] if r["id"] == "subj-math")
    assert subject["status"] == "lets_bridge_gaps"
    assert subject["mastery_percentage"] == 50

    record = fake_supabase.tables["assessments"][0]
    assert record["score"] == 50
    assert record["skipped_questions"] == 1
    assert record["assessment_data"]["gap_analysis"]["learningPath"] == resp.result.learning_path

    assert resp.progression.xp_earned == 20
    assert resp.progression.streak_day == 1
    assert resp.progression.badge_earned is None
    stats = fake_supabase.tables["user_stats"][0]
    assert stats["total_xp"] == 20
    assert stats["revision"] == 1
    assert stats["last_activity_date"] == "2025-11-14"
    assert fake_supabase.tables["learning_streaks"][0]["current_streak"] == 1
    assert fake_supabase.tables["xp_transactions"][0]["xp_amount"] == 20


@pytest.mark.anyio("asyncio")
async def test_perfect_score_awards_badge_once(fake_supabase):
    service = AssessmentService()
    perfect = _answers({"q1": 1, "q2": 0, "q3": 2, "q4": 3})

    first = await service.submit("user-1", "subj-math", perfect, activity_date=DAY)
    second = await service.submit("user-1", "subj-math", perfect, activity_date=DAY)

    assert first.result.score_percent == 100
    assert first.progression.xp_earned == 90
    assert first.progression.badge_earned == "perfect_score"
    assert first.progression.badges_earned == ["perfect_score", "subject_champion"]
    assert second.progression.badge_earned is None
    assert second.progression.badges_earned == []
    assert [r["badge_code"] for r in fake_supabase.tables["user_badges"]] == ["perfect_score", "subject_champion"]


@pytest.mark.anyio("asyncio")
async def test_retaking_assessment_earns_xp_again(fake_supabase):
    service = AssessmentService()
    answers = _answers({"q1": 1, "q2": 0, "q3": 0, "q4": 0})

    await service.submit("user-1", "subj-math", answers, activity_date=DAY)
    again = await service.submit("user-1", "subj-math", answers, activity_date=DAY)

    assert again.status == SubjectStatus.lets_bridge_gaps
    assert again.progression.new_counters.total_xp == 40
    assert again.progression.new_counters.total_quizzes == 2
    assert again.progression.streak_day == 1
    assert fake_supabase.tables["user_stats"][0]["revision"] == 2
    assert len(fake_supabase.tables["assessments"]) == 2


@pytest.mark.anyio("asyncio")
async def test_subject_found_by_name_when_id_is_stale(fake_supabase):
    service = AssessmentService()

    resp = await service.submit(
        "user-1",
        "stale-id",
        _answers({"q1": 1}),
        questions=[],
        subject_name="Science",
        activity_date=DAY,
    )

    assert resp.subject_id == "subj-sci"
    assert resp.status == SubjectStatus.lets_bridge_gaps
    assert resp.result.total_questions == 0
    assert resp.progression.xp_earned == 0


@pytest.mark.anyio("asyncio")
async def test_unknown_subject_raises(fake_supabase):
    service = AssessmentService()
    with pytest.raises(SubjectNotFoundError):
        await service.submit("user-1", "nope", {}, questions=[], activity_date=DAY)


@pytest.mark.anyio("asyncio")
async def test_missing_question_set_raises(fake_supabase):
    service = AssessmentService()
    with pytest.raises(QuestionSetNotFoundError):
        await service.submit("user-1", "subj-history", {}, activity_date=DAY)


@pytest.mark.anyio("asyncio")
async def test_question_rows_are_normalised(fake_supabase):
    questions = await AssessmentService().get_question_set("subj-math")
    assert [q.id for q in questions] == ["q1", "q2", "q3", "q4"]
    assert questions[0].correct_option_index == 1
    assert questions[3].concept_tag == "General Concepts"


@pytest.mark.anyio("asyncio")
async def test_perfect_tenth_quiz_awards_every_new_badge(fake_supabase):
    fake_supabase.tables["user_stats"] = [
        {"user_id": "user-1", "total_xp": 300, "current_level": 4, "total_quizzes": 9, "perfect_quizzes": 0, "revision": 9}
    ]
    service = AssessmentService()

    tenth = await service.submit("user-1", "subj-math", _answers({"q1": 1, "q2": 0, "q3": 2, "q4": 3}), activity_date=DAY)
    eleventh = await service.submit("user-1", "subj-math", _answers({"q1": 1, "q2": 0, "q3": 2, "q4": 0}), activity_date=DAY)

    assert tenth.progression.badges_earned == ["perfect_score", "quiz_master", "subject_champion"]
    assert tenth.progression.badge_earned == "perfect_score"
    assert eleventh.progression.badges_earned == []
    owned = sorted(r["badge_code"] for r in fake_supabase.tables["user_badges"])
    assert owned == ["perfect_score", "quiz_master", "subject_champion"]


@pytest.mark.anyio("asyncio")
async def test_subject_champion_needs_eighty_percent(fake_supabase):
    service = AssessmentService()

    resp = await service.submit("user-1", "subj-math", _answers({"q1": 1, "q2": 0, "q3": 2, "q4": 0}), activity_date=DAY)

    assert resp.result.score_percent == 75
    assert resp.progression.badges_earned == []
    assert fake_supabase.tables.get("user_badges", []) == []


@pytest.mark.anyio("asyncio")
async def test_rejected_progression_leaves_no_assessment_record(fake_supabase, monkeypatch):
    service = AssessmentService()

    async def conflicting_complete(*args, **kwargs):
        raise ProgressionConflictError("could not commit progression for user user-1")

    monkeypatch.setattr(service.progression, "complete", conflicting_complete)

    with pytest.raises(ProgressionConflictError):
        await service.submit("user-1", "subj-math", _answers({"q1": 1}), activity_date=DAY)

    assert "assessments" not in fake_supabase.tables
    subject = next(r for r in fake_supabase.tables["subject_progress"] if r["id"] == "subj-math")
    assert subject["status"] == "getting_to_know_you"


@pytest.mark.anyio("asyncio")
async def test_failed_assessment_insert_is_reported_unsaved(fake_supabase):
    fake_supabase.fail_before_commit.append(("assessments", "insert"))
    service = AssessmentService()

    resp = await service.submit("user-1", "subj-math", _answers({"q1": 1, "q2": 0}), activity_date=DAY)

    assert resp.saved is False
    assert fake_supabase.tables.get("assessments", []) == []
    assert resp.progression.xp_earned == 20
    assert fake_supabase.tables["user_stats"][0]["total_xp"] == 20
