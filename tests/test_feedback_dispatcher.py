import pytest

from formcoach.feedback.feedback_dispatcher import (
    DispatcherState,
    FeedbackDispatcher,
    FeedbackRequest,
    create_first_message,
    create_system_prompt,
)
from formcoach.pose_detection.keypoints import BodyPart

from helpers import FakeChannel

SHOULDER_MSG = "Stack your shoulders directly over your wrists"
HIP_MSG = "Keep your hips level, don't let them sag or pike up"


def request(*messages, parts=(BodyPart.RIGHT_SHOULDER,), at=0):
    return FeedbackRequest.create("plank", parts, messages, at)


@pytest.fixture
def dispatcher(channel, clock):
    return FeedbackDispatcher(channel, clock=clock)


def test_rejects_requests_during_startup_lock(dispatcher, channel):
    assert dispatcher.state(0) is DispatcherState.LOCKED
    assert dispatcher.status == "Locked"
    assert not dispatcher.queue(request(SHOULDER_MSG), 9999)
    assert channel.sessions == []
    assert dispatcher.state(10000) is DispatcherState.IDLE


def test_dispatches_immediately_when_idle(dispatcher, channel):
    assert dispatcher.queue(request(SHOULDER_MSG), 10000)
    assert dispatcher.state(10000) is DispatcherState.SPEAKING
    assert dispatcher.last_dispatch_ms == 10000
    assert channel.first_messages == [SHOULDER_MSG]
    assert dispatcher.pending == ()


def test_channel_events_drive_status(dispatcher, channel, clock):
    clock.advance(10000)
    dispatcher.queue(request(SHOULDER_MSG), 10000)
    listener = channel.last_listener

    listener.on_connect()
    dispatcher.flush(10100)
    assert dispatcher.status == "Speaking"

    listener.on_mode_change("listening")
    dispatcher.flush(10200)
    assert dispatcher.status == "Listening"

    listener.on_disconnect()
    dispatcher.flush(12000)
    assert dispatcher.status == "Inactive"
    assert dispatcher.state(12000) is DispatcherState.IDLE
    assert dispatcher.last_dispatch_ms == 12000


def test_cooldown_measured_from_last_session(dispatcher, channel):
    dispatcher.queue(request(SHOULDER_MSG), 10000)
    channel.last_listener.on_disconnect()
    dispatcher.flush(12000)

    assert not dispatcher.queue(request(HIP_MSG), 16999)
    assert dispatcher.queue(request(HIP_MSG), 17000)
    assert channel.first_messages == [SHOULDER_MSG, HIP_MSG]


def test_equivalent_requests_are_deduplicated(dispatcher, channel):
    dispatcher.queue(request(SHOULDER_MSG, HIP_MSG), 10000)

    # still speaking after the cooldown has elapsed
    same = request(HIP_MSG, SHOULDER_MSG, parts=(BodyPart.RIGHT_HIP, BodyPart.RIGHT_SHOULDER))
    assert not dispatcher.queue(same, 16000)

    assert dispatcher.queue(request(HIP_MSG), 16000)
    assert not dispatcher.queue(request(HIP_MSG), 16000)
    assert len(dispatcher.pending) == 1
    assert len(channel.sessions) == 1


def test_queued_request_waits_for_settle_delay(dispatcher, channel):
    dispatcher.queue(request(SHOULDER_MSG), 10000)
    dispatcher.queue(request(HIP_MSG), 15000)

    channel.last_listener.on_disconnect()
    dispatcher.flush(17000)
    assert dispatcher.state(17000) is DispatcherState.IDLE
    dispatcher.flush(17999)
    assert len(channel.sessions) == 1

    dispatcher.flush(18000)
    assert channel.first_messages == [SHOULDER_MSG, HIP_MSG]
    assert dispatcher.current_request.feedback_messages == (HIP_MSG,)


def test_channel_error_backs_off(dispatcher, channel):
    dispatcher.queue(request(SHOULDER_MSG), 10000)
    dispatcher.queue(request(HIP_MSG), 15000)

    channel.last_listener.on_error(RuntimeError("socket closed"))
    dispatcher.flush(16000)
    assert dispatcher.status == "Error"
    dispatcher.flush(18999)
    assert len(channel.sessions) == 1
    dispatcher.flush(19000)
    assert len(channel.sessions) == 2


def test_failed_start_is_treated_as_error(clock):
    channel = FakeChannel(fail_on_start=True)
    dispatcher = FeedbackDispatcher(channel, clock=clock, initial_lock_ms=0)

    assert dispatcher.queue(request(SHOULDER_MSG), 0)
    assert dispatcher.status == "Error"
    assert dispatcher.state(0) is DispatcherState.IDLE
    assert dispatcher.current_request is None
    assert dispatcher.pending == ()
    assert dispatcher.last_dispatch_ms == 0


def test_cancel_discards_queue_and_stale_events(dispatcher, channel, clock):
    clock.advance(10000)
    dispatcher.queue(request(SHOULDER_MSG), 10000)
    dispatcher.queue(request(HIP_MSG), 15000)
    stale = channel.last_listener

    dispatcher.cancel()
    assert channel.ended == 1
    assert dispatcher.pending == ()
    assert dispatcher.status == "Inactive"
    assert dispatcher.state(15000) is DispatcherState.IDLE

    assert dispatcher.queue(request(HIP_MSG), 15100)
    stale.on_disconnect()
    dispatcher.flush(15200)
    assert dispatcher.state(15200) is DispatcherState.SPEAKING
    assert dispatcher.current_request.feedback_messages == (HIP_MSG,)


def test_uses_injected_clock(dispatcher, channel, clock):
    clock.advance(10000)
    assert dispatcher.queue(request(SHOULDER_MSG))
    assert dispatcher.last_dispatch_ms == 10000


def test_request_parts_sorted_and_keyed_by_messages():
    req = FeedbackRequest.create("plank", [BodyPart.RIGHT_HIP, BodyPart.LEFT_ANKLE], ["b", "a"], 0)
    assert req.incorrect_parts == (BodyPart.LEFT_ANKLE, BodyPart.RIGHT_HIP)
    assert req.key == ("a", "b")


def test_system_prompt_lists_mistakes_and_focus():
    prompt = create_system_prompt("downward_dog", [BodyPart.LEFT_HIP, BodyPart.RIGHT_KNEE],
                                  ["Send your hips up and back", "Straighten your legs"])
    assert "with their Downward dog pose" in prompt
    assert "- Send your hips up and back\n- Straighten your legs\n" in prompt
    assert "Focus areas: left hip, right knee" in prompt
    assert "6. Don't introduce yourself" in prompt


def test_first_message_uses_primary_correction():
    assert create_first_message("plank", ["keep your hips level", "other"]) == "Keep your hips level"
    assert create_first_message("downward_dog", []) == "Adjust your downward dog pose"


def test_status_follows_caller_timestamps(dispatcher, clock):
    # the clock stays at 0 while frames carry their own timestamps
    dispatcher.flush(9000)
    assert dispatcher.status == "Locked"
    dispatcher.flush(10500)
    assert dispatcher.status == "Inactive"
    assert clock() == 0
