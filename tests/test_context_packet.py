from socratic_moderator.context_packet import (
    build_context_packet,
    render_to_prompt,
    trim_to_words,
)
from socratic_moderator.models import AI_USERNAME, SessionState, SlimMessage
from socratic_moderator.prompts import ModerationTask
from socratic_moderator.scoring import compute_session_metrics
from socratic_moderator.session_state import default_state, ingest_message


def _metrics(state: SessionState):
    return compute_session_metrics(
        state.graph, state.scores, state.participation, state.message_count
    )


def _msg(content: str, username: str = "ana", type_: str = "claim") -> SlimMessage:
    return SlimMessage(username=username, content=content, type=type_, timestamp="t")


def test_trim_to_words() -> None:
    assert trim_to_words("  one two three  ", 3) == "one two three"
    assert trim_to_words("one two three four", 2) == "one two…"
    assert trim_to_words("", 5) == ""


def test_packet_for_empty_room() -> None:
    state = default_state("r")
    packet = build_context_packet(
        state, _metrics(state), "new idea here", ModerationTask.CLASSIFY_AND_FEEDBACK
    )
    assert packet.session_summary == 'Discussion: "Untitled Discussion". 0 messages exchanged.'
    assert packet.recent_messages == []
    assert packet.new_message == "new idea here"
    assert list(packet.metrics) == [
        "claims",
        "evidence",
        "counters",
        "questions",
        "synthesis",
        "avg_score",
        "participation",
        "unresolved",
        "total_msgs",
        "stage",
    ]


def test_packet_keeps_last_five_trimmed_messages() -> None:
    state = default_state("r")
    for i in range(7):
        username = AI_USERNAME if i % 2 else "ana"
        content = f"msg{i} " + " ".join(["word"] * 40)
        state = ingest_message(state, _msg(content, username), 1.0)
    packet = build_context_packet(
        state, _metrics(state), "x y", ModerationTask.CLASSIFY_AND_FEEDBACK
    )
    assert len(packet.recent_messages) == 5
    assert packet.recent_messages[0].text.startswith("msg2 ")
    assert [m.role for m in packet.recent_messages] == [
        "user",
        "assistant",
        "user",
        "assistant",
        "user",
    ]
    for m in packet.recent_messages:
        assert len(m.text.split()) == 30
        assert m.text.endswith("…")


def test_packet_trims_summary_and_new_message() -> None:
    state = SessionState(room_id="r", summary=" ".join(["s"] * 50))
    new_message = " ".join(["n"] * 100)
    packet = build_context_packet(
        state, _metrics(state), new_message, ModerationTask.DETECT_CONTRADICTION
    )
    assert len(packet.session_summary.split()) == 40
    assert len(packet.new_message.split()) == 80
    assert packet.new_message.endswith("…")


def test_render_to_prompt_without_history() -> None:
    state = default_state("r")
    packet = build_context_packet(
        state, _metrics(state), "Trains beat planes", ModerationTask.CLASSIFY_AND_FEEDBACK
    )
    assert render_to_prompt(packet) == (
        'CTX: Discussion: "Untitled Discussion". 0 messages exchanged.\n'
        "METRICS: claims=0, evidence=0, counters=0, questions=0, synthesis=0, "
        "avg_score=0, participation=0, unresolved=0, total_msgs=0, stage=opening\n"
        "NEW: Trains beat planes\n"
        "TASK: classify_and_feedback"
    )


def test_render_to_prompt_with_history() -> None:
    state = ingest_message(default_state("r"), _msg("Trains beat planes"), 2.5)
    state = ingest_message(state, _msg("What about cost?", AI_USERNAME, "question"), 0)
    packet = build_context_packet(
        state, _metrics(state), "Cost is lower per km", ModerationTask.GENERATE_QUESTION
    )
    prompt = render_to_prompt(packet)
    lines = prompt.split("\n")
    assert lines[0] == 'CTX: Discussion: "Trains beat planes…". 2 messages exchanged.'
    assert "avg_score=1.25" in lines[1]
    assert lines[2] == "HISTORY:"
    assert lines[3] == "[user]: Trains beat planes"
    assert lines[4] == "[assistant]: What about cost?"
    assert lines[5] == "NEW: Cost is lower per km"
    assert lines[6] == "TASK: generate_question"
