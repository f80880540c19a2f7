"""Classifies a single estimated call as on time, delayed, cancelled or ignored."""

import math

from config import DELAY_THRESHOLD_MINUTES
from models import Status


def delay_minutes(call):
    """Minutes between aimed and expected departure, half rounding up."""
    diff_seconds = (call.expected_time - call.aimed_time).total_seconds()
    return math.floor(diff_seconds / 60 + 0.5)


def classify(call):
    # Schedule-only estimates say nothing about punctuality
    if not call.realtime:
        return Status.IGNORED
    if call.cancelled:
        return Status.CANCELLED
    if call.aimed_time == call.expected_time:
        return Status.ON_TIME
    if delay_minutes(call) > DELAY_THRESHOLD_MINUTES:
        return Status.DELAYED
    return Status.ON_TIME
