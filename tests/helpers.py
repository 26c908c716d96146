from formcoach.feedback.voice_feedback import AdvisoryChannel
from formcoach.pose_detection.keypoints import KEYPOINT_ORDER, normalize_keypoints

# Right-side plank profile, collinear body line
PLANK_LINE = {
    "right_shoulder": (0.2, 0.3, 0.9),
    "right_hip": (0.5, 0.31, 0.9),
    "right_ankle": (0.8, 0.32, 0.9),
}

# Upper arm 40 degrees off the torso line, i.e. 38 degrees at the shoulder (target 85 +/- 30)
BAD_ARM = {"right_elbow": (0.3532, 0.4286, 0.9)}

# Upper arm hanging straight down, 88 degrees at the shoulder
GOOD_ARM = {"right_elbow": (0.2, 0.5, 0.9)}


def make_frame(points):
    """Build raw model output: 17 (y, x, confidence) triples; unspecified parts get zero confidence."""
    frame = []
    for part in KEYPOINT_ORDER:
        x, y, score = points.get(part.value, (0.0, 0.0, 0.0))
        frame.append([y, x, score])
    return frame


def make_keypoints(points):
    return normalize_keypoints(make_frame(points))


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class FakeChannel(AdvisoryChannel):
    """Records sessions; tests drive completion through the stored listeners."""

    def __init__(self, fail_on_start=False):
        self.sessions = []
        self.ended = 0
        self.closed = False
        self.fail_on_start = fail_on_start

    def start_session(self, prompt, listener):
        if self.fail_on_start:
            raise ConnectionError("agent unreachable")
        self.sessions.append((prompt, listener))

    def end_session(self):
        self.ended += 1

    def close(self):
        self.closed = True

    @property
    def last_listener(self):
        return self.sessions[-1][1]

    @property
    def first_messages(self):
        return [prompt.first_message for prompt, _ in self.sessions]
