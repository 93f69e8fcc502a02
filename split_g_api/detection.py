import threading
import time
from collections import namedtuple

from split_g_api.inference import has_class

DetectionState = namedtuple("DetectionState", ["consecutive", "message", "capture"])

MSG_NO_GLASS = "Show your pint glass"
MSG_NO_G = "Make sure the G pattern is visible"
MSG_CENTER = "Keep the glass centered..."
MSG_HOLD = "Hold still..."
MSG_CAPTURE = "Perfect! Processing your pour..."


class DetectionTracker:
    """Counts consecutive frames showing both the glass and the G.

    The browser polls every 500ms; once enough frames in a row look right the
    tracker asks it to capture the current frame. It stays in the captured
    state until reset.
    """

    def __init__(self, capture_after=5):
        if capture_after < 1:
            raise ValueError("capture_after must be at least 1")
        self.capture_after = capture_after
        self.consecutive = 0
        self.captured = False

    def update(self, predictions):
        if self.captured:
            return DetectionState(self.consecutive, MSG_CAPTURE, True)

        has_glass = has_class(predictions, "glass")
        has_g = has_class(predictions, "G")

        if not (has_glass and has_g):
            self.consecutive = 0
            message = MSG_NO_GLASS if not has_glass else MSG_NO_G
            return DetectionState(0, message, False)

        previous = self.consecutive
        self.consecutive += 1

        if previous >= self.capture_after - 1:
            self.captured = True
            return DetectionState(self.consecutive, MSG_CAPTURE, True)
        if previous >= 1:
            return DetectionState(self.consecutive, MSG_HOLD, False)
        return DetectionState(self.consecutive, MSG_CENTER, False)

    def reset(self):
        self.consecutive = 0
        self.captured = False


class TrackerRegistry:
    """Per-session trackers shared between request threads."""

    def __init__(self, capture_after=5, idle_seconds=300, clock=time.monotonic):
        self.capture_after = capture_after
        self.idle_seconds = idle_seconds
        self.clock = clock
        self._lock = threading.Lock()
        self._trackers = {}

    def update(self, session_id, predictions):
        with self._lock:
            now = self.clock()
            self._expire(now)
            tracker, _ = self._trackers.get(session_id, (None, None))
            if tracker is None:
                tracker = DetectionTracker(self.capture_after)
            self._trackers[session_id] = (tracker, now)
            return tracker.update(predictions)

    def reset(self, session_id):
        with self._lock:
            self._trackers.pop(session_id, None)

    def __len__(self):
        with self._lock:
            return len(self._trackers)

    def _expire(self, now):
        stale = [key for key, (_, seen) in self._trackers.items()
                 if now - seen > self.idle_seconds]
        for key in stale:
            del self._trackers[key]
