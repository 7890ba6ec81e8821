"""
Decision logic for whether a user owes an acceptance of the user agreement.

All times are whole-second Unix timestamps. EPOCH stands for "never happened":
it is the last-modified time of an agreement page that was never created and the
accepted time of a user who never accepted.
"""
from dataclasses import dataclass
from datetime import UTC, datetime

EPOCH = 0
SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class Agreement:
    """Current agreement text and the time it was last modified."""

    text: str
    last_modified_at: int = EPOCH


def to_epoch(value: datetime) -> int:
    """Convert a datetime to whole epoch seconds (naive values are taken as UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp())


def from_epoch(value: int) -> datetime:
    """Convert epoch seconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value, UTC)


def now_epoch() -> int:
    """Current time in whole epoch seconds."""
    return to_epoch(datetime.now(UTC))


def _window_enabled(reaccept_after_days: int | None) -> bool:
    # bool is an int subclass; True must not mean "1 day"
    return (
        isinstance(reaccept_after_days, int)
        and not isinstance(reaccept_after_days, bool)
        and reaccept_after_days > 0
    )


def reaccept_cutoff(now: int, reaccept_after_days: int | None) -> int | None:
    """
    Return the oldest acceptance time still inside the reaccept window.

    Returns None when the window is disabled (zero, negative, unset or not an int).
    """
    if not _window_enabled(reaccept_after_days):
        return None
    return now - reaccept_after_days * SECONDS_PER_DAY


def must_accept(
    agreement_last_modified_at: int,
    user_accepted_at: int,
    reaccept_after_days: int | None,
    now: int,
) -> bool:
    """
    Decide whether the user must (re-)accept the agreement.

    The comparison against the agreement's modification time is `<=`, not `<`: a page
    that was never edited and a user who never accepted both sit at EPOCH, and that
    pair has to prompt.

    Args:
        agreement_last_modified_at: When the agreement text last changed.
        user_accepted_at: When the user last accepted, EPOCH if never.
        reaccept_after_days: Days after which an acceptance expires. Zero, negative
            or None disables expiry.
        now: Current time.

    Returns:
        True if the agreement must be shown.
    """
    if user_accepted_at <= agreement_last_modified_at:
        return True

    cutoff = reaccept_cutoff(now, reaccept_after_days)
    if cutoff is None:
        return False
    return user_accepted_at <= cutoff


def requires_acceptance(
    agreement: Agreement,
    user_accepted_at: int,
    reaccept_after_days: int | None,
    now: int,
) -> bool:
    """Like must_accept, but an empty agreement never blocks anyone."""
    if not agreement.text:
        return False
    return must_accept(
        agreement.last_modified_at,
        user_accepted_at,
        reaccept_after_days,
        now,
    )
