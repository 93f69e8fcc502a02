import math

MAX_SCORE = 5.0

# Weights must sum to 1 so a split exactly one half-G away scores 0.
VERTICAL_WEIGHT = 0.85
HORIZONTAL_WEIGHT = 0.15

SCORE_MESSAGES = [
    (4.70, "Sláinte! 🏆 A Perfect Split!"),
    (3.75, "Beautiful Split! ⭐ Like a True Dubliner!"),
    (3.0, "Cheers for trying! 🍺 Have Another Go!"),
]
DEFAULT_MESSAGE = "The Perfect Split Awaits! 🎓 Try Again!"


def _best(predictions, name):
    matches = [p for p in predictions if p.get("class") == name]
    if not matches:
        return None
    return max(matches, key=lambda p: p.get("confidence") or 0)


def _box(pred):
    try:
        return (float(pred["x"]), float(pred["y"]),
                float(pred["width"]), float(pred["height"]))
    except (KeyError, TypeError, ValueError):
        return None


def _target(result):
    """Centre and size of the G, in the same frame as the split prediction."""
    g_box = _box(_best(result.pint_predictions, "G") or {})

    if result.split_frame and _best(result.split_predictions, "split"):
        width = result.split_frame["width"]
        height = result.split_frame["height"]
        # The split image is a crop around the G, so the G fills the frame.
        return width / 2.0, height / 2.0, width, height, result.split_predictions

    if g_box is None:
        return None
    x, y, width, height = g_box
    return x, y, width, height, result.pint_predictions


def weighted_distance(dx, dy):
    return math.sqrt(VERTICAL_WEIGHT * dy ** 2 + HORIZONTAL_WEIGHT * dx ** 2)


def calculate_score(result):
    """Grade a pour from 0 to 5 by how close the split sits to the middle of the G."""
    target = _target(result)
    if target is None:
        return 0.0

    target_x, target_y, g_width, g_height, predictions = target
    split = _box(_best(predictions, "split") or {})
    if split is None or g_width <= 0 or g_height <= 0:
        return 0.0

    split_x, split_y = split[0], split[1]
    dy = abs(split_y - target_y) / (g_height / 2.0)
    dx = abs(split_x - target_x) / (g_width / 2.0)

    score = MAX_SCORE * max(0.0, 1.0 - weighted_distance(dx, dy))
    return round(min(MAX_SCORE, score), 2)


def score_message(score):
    for threshold, message in SCORE_MESSAGES:
        if score >= threshold:
            return message
    return DEFAULT_MESSAGE
