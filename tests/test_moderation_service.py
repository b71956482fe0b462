import json

import pytest

from socratic_moderator.errors import PersistenceError
from socratic_moderator.models import AI_COLUMN_TYPE, AI_USERNAME, ModeratorResponse, SlimMessage
from socratic_moderator.moderation import (
    ModerationRequest,
    ModerationResult,
    ModerationService,
    SkippedResult,
    compose_ai_content,
    select_task,
)
from socratic_moderator.prompts import ModerationTask
from socratic_moderator.services.message_store import InMemoryMessageStore
from socratic_moderator.services.session_store import InMemorySessionStore
from socratic_moderator.session_state import default_state, ingest_message

from fakes import FailingMessageStore, FailingSessionSave, FakeModelClient


def _service(model=None, sessions=None, messages=None) -> ModerationService:
    return ModerationService(
        session_store=sessions or InMemorySessionStore(),
        message_store=messages or InMemoryMessageStore(),
        model_client=model or FakeModelClient(),
    )


def _request(content: str, username: str = "ana", room_id: str = "room-1") -> ModerationRequest:
    return ModerationRequest(content=content, room_id=room_id, username=username)


@pytest.mark.asyncio
async def test_filler_heavy_claim_reaches_model_with_cleaned_text() -> None:
    model = FakeModelClient()
    service = _service(model=model)
    result = await service.moderate(
        _request("ok so like i think maybe this works because the study shows clear evidence")
    )

    assert isinstance(result, ModerationResult)
    assert len(model.calls) == 1
    task, prompt = model.calls[0]
    assert task == ModerationTask.CLASSIFY_AND_FEEDBACK
    assert "NEW: this works because the study shows clear evidence" in prompt
    assert "HISTORY" not in prompt
    assert result.type == "evidence"
    # evidence markers (+2) and the evidence type bonus (+0.5)
    assert result.reasoning_score == 2.5
    assert result.novel is True
    assert result.contradicts is False
    assert result.discussion_stage == "opening"


@pytest.mark.asyncio
async def test_moderation_updates_state_and_stores_ai_reply() -> None:
    sessions = InMemorySessionStore()
    messages = InMemoryMessageStore()
    service = _service(sessions=sessions, messages=messages)
    await service.moderate(_request("Evidence shows this is true"))

    state = await sessions.get("room-1")
    assert state.message_count == 2
    assert state.participation == {"ana": 1}
    assert [m.username for m in state.last_messages] == ["ana", AI_USERNAME]
    assert state.last_messages[0].content == "Evidence shows this is true"
    assert state.graph["evidence"] == 2
    assert len(state.scores.score_history) == 2

    stored = await messages.recent("room-1")
    assert len(stored) == 1
    assert stored[0]["username"] == AI_USERNAME
    assert stored[0]["model_type"] == "evidence"
    assert stored[0]["content"] == state.last_messages[1].content


@pytest.mark.asyncio
async def test_ai_reply_is_always_stored_as_question() -> None:
    messages = InMemoryMessageStore()
    for model_type in ("claim", "synthesis", "counterargument", "bogus"):
        reply = json.dumps({"type": model_type, "short_feedback": "f", "guiding_question": "q?"})
        service = _service(model=FakeModelClient(reply), messages=messages)
        await service.moderate(_request(f"Testing category handling with {model_type} type", room_id=model_type))
        stored = await messages.recent(model_type)
        assert stored[0]["column_type"] == AI_COLUMN_TYPE == "question"


@pytest.mark.asyncio
async def test_low_quality_is_skipped_without_side_effects() -> None:
    model = FakeModelClient()
    sessions = InMemorySessionStore()
    service = _service(model=model, sessions=sessions)
    await service.moderate(_request("Cities should ban cars downtown"))
    before = await sessions.get("room-1")

    result = await service.moderate(_request("aaaaaa"))

    assert result == SkippedResult(reason="low_quality")
    assert len(model.calls) == 1
    assert await sessions.get("room-1") == before


@pytest.mark.asyncio
async def test_second_identical_message_is_duplicate() -> None:
    model = FakeModelClient()
    sessions = InMemorySessionStore()
    service = _service(model=model, sessions=sessions)

    first = await service.moderate(_request("Evidence shows this is true"))
    before = await sessions.get("room-1")
    second = await service.moderate(_request("Evidence shows this is true", username="ben"))

    assert isinstance(first, ModerationResult)
    assert second == SkippedResult(reason="duplicate")
    assert len(model.calls) == 1
    assert await sessions.get("room-1") == before


@pytest.mark.asyncio
async def test_reordered_words_are_duplicates() -> None:
    service = _service()
    await service.moderate(_request("Public transit reduces traffic congestion"))
    result = await service.moderate(_request("traffic congestion reduces public transit"))
    assert result == SkippedResult(reason="duplicate")


@pytest.mark.asyncio
async def test_repeated_idea_is_flagged_not_novel() -> None:
    service = _service()
    await service.moderate(_request("Renewable energy reduces carbon emissions significantly"))
    result = await service.moderate(
        _request("Renewable energy clearly reduces emissions", username="ben")
    )
    assert isinstance(result, ModerationResult)
    assert result.novel is False


@pytest.mark.asyncio
async def test_contradiction_task_after_counterargument() -> None:
    sessions = InMemorySessionStore()
    state = ingest_message(
        default_state("room-1"),
        SlimMessage(username="ben", content="Cars are needed", type="counterargument", timestamp="t"),
        3.0,
    )
    await sessions.save(state)
    reply = json.dumps(
        {
            "contradicts": True,
            "reason": "Conflicts with earlier claim",
            "type": "claim",
            "short_feedback": "Two positions clash.",
            "guiding_question": "Which one do you hold?",
        }
    )
    model = FakeModelClient(reply)
    service = _service(model=model, sessions=sessions)

    result = await service.moderate(_request("Cars should be banned from every city"))

    assert model.calls[0][0] == ModerationTask.DETECT_CONTRADICTION
    assert result.contradicts is True
    updated = await sessions.get("room-1")
    assert updated.scores.logic_issues == 1
    assert "⚠️ Contradiction: Conflicts with earlier claim" in updated.last_messages[-1].content


@pytest.mark.asyncio
async def test_unparseable_model_reply_uses_canned_response() -> None:
    service = _service(model=FakeModelClient("this is not json"))
    result = await service.moderate(_request("Homework improves long term retention"))
    assert result.type == "question"
    assert result.short_feedback == "Reasoning basis unclear."
    assert result.guiding_question == "What evidence supports this claim?"


@pytest.mark.asyncio
async def test_persistence_failure_raises_and_keeps_state() -> None:
    sessions = InMemorySessionStore()
    service = _service(sessions=sessions, messages=FailingMessageStore())
    with pytest.raises(PersistenceError):
        await service.moderate(_request("Homework improves long term retention"))
    assert await sessions.get("room-1") == default_state("room-1")


@pytest.mark.asyncio
async def test_state_save_failure_still_returns_result() -> None:
    service = _service(sessions=FailingSessionSave())
    result = await service.moderate(_request("Homework improves long term retention"))
    assert isinstance(result, ModerationResult)


@pytest.mark.asyncio
async def test_summary_written_every_eight_messages() -> None:
    sessions = InMemorySessionStore()
    model = FakeModelClient(
        json.dumps({"type": "question", "short_feedback": "f", "guiding_question": "q?"})
    )
    service = _service(model=model, sessions=sessions)
    topics = [
        "Should public libraries stay open overnight?",
        "Night shifts would cost more money",
        "Students need quiet places late",
        "Security staff would be required",
    ]
    for i, text in enumerate(topics):
        await service.moderate(_request(text, username=f"user{i % 2}"))

    state = await sessions.get("room-1")
    assert state.message_count == 8
    assert state.summary.startswith('Topic: "Should public libraries stay open overnight?".')
    assert state.summary.endswith("Total messages: 8.")


@pytest.mark.asyncio
async def test_nudge_uses_generate_question_and_does_not_write() -> None:
    sessions = InMemorySessionStore()
    model = FakeModelClient(
        json.dumps({"type": "question", "guiding_question": "What would change your mind?"})
    )
    service = _service(model=model, sessions=sessions)

    assert await service.nudge("room-1") == SkippedResult(reason="empty_room")

    await service.moderate(_request("Zoos protect endangered species"))
    before = await sessions.get("room-1")
    result = await service.nudge("room-1")

    assert isinstance(result, ModeratorResponse)
    assert result.guiding_question == "What would change your mind?"
    task, prompt = model.calls[-1]
    assert task == ModerationTask.GENERATE_QUESTION
    assert "NEW: Zoos protect endangered species" in prompt
    assert await sessions.get("room-1") == before


def test_select_task_looks_at_last_three() -> None:
    state = default_state("r")
    state = ingest_message(
        state, SlimMessage(username="a", content="x", type="counterargument", timestamp="t"), 1.0
    )
    assert select_task(state) == ModerationTask.DETECT_CONTRADICTION
    for i in range(3):
        state = ingest_message(
            state, SlimMessage(username="a", content=f"y{i}", type="claim", timestamp="t"), 1.0
        )
    assert select_task(state) == ModerationTask.CLASSIFY_AND_FEEDBACK


def test_compose_ai_content() -> None:
    response = ModeratorResponse(
        type="claim",
        short_feedback="Unstated premise.",
        guiding_question="Why?",
        contradicts=True,
        contradiction_reason="Clashes with A",
    )
    assert compose_ai_content(response, novel=False) == (
        "Unstated premise. [Similar idea already raised]\n\n👉 Why?\n\n⚠️ Contradiction: Clashes with A"
    )
    response.contradicts = False
    assert compose_ai_content(response, novel=True) == "Unstated premise.\n\n👉 Why?"
