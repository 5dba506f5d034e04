import logging
from datetime import timezone
from typing import Sequence

from ..domain.errors import (
    CancelNotAllowedError,
    ReservationNotFoundError,
    ReservationRejectedError,
    RoomNotFoundError,
    UserNotFoundError,
)
from ..domain.repositories import ReservationRepository, RoomRepository, UserRepository
from ..domain.services import (
    CANCEL_LEAD_TIME_MESSAGE,
    BookingRequest,
    Occurrence,
    RuleSnapshot,
    can_cancel,
    expand_occurrences,
    overlaps,
    validate_occurrence,
)
from ..models import Reservation
from ..utils.clock import Clock, system_clock
from ..utils.time import to_utc_naive

logger = logging.getLogger(__name__)


async def detect_conflicts(
    res_repo: ReservationRepository,
    *,
    room_id: int,
    occurrences: Sequence[Occurrence],
) -> list[bool]:
    """
    For each occurrence, whether an active reservation on the room overlaps it.

    A single scan over the span of the whole series serves every occurrence, so a long
    series costs one query. On write paths the caller must already hold the room lock
    (RoomRepository.get_for_update) or the answer is stale by the time it is acted on.
    """
    if not occurrences:
        return []
    intervals = [(to_utc_naive(o.starts_at), to_utc_naive(o.ends_at)) for o in occurrences]
    booked = await res_repo.list_active_for_room(
        room_id,
        min(start for start, _ in intervals),
        max(end for _, end in intervals),
    )
    return [any(overlaps(r.starts_at, r.ends_at, start, end) for r in booked) for start, end in intervals]


async def create_reservations(
    room_repo: RoomRepository,
    user_repo: UserRepository,
    res_repo: ReservationRepository,
    *,
    request: BookingRequest,
    user_id: int,
    clock: Clock = system_clock,
) -> list[Reservation]:
    """
    Admit a (possibly recurring) booking request. Must run inside one transaction:
    either every occurrence is written or, on the first invalid occurrence,
    ReservationRejectedError is raised before anything is added to the session.
    """
    user = await user_repo.get(user_id)
    if user is None:
        raise UserNotFoundError("user not found")
    room = await room_repo.get_for_update(request.room_id)
    if room is None:
        raise RoomNotFoundError("room not found")

    occurrences = expand_occurrences(request)
    if not occurrences:
        # Every step of the series fell on a weekend; validate the raw request so the
        # caller gets the reason instead of an empty success.
        occurrences = [Occurrence(starts_at=request.starts_at, ends_at=request.ends_at)]

    now = to_utc_naive(clock())
    # Siblings of the same batch are not committed yet and do not count here.
    future_reservations = await res_repo.count_future_for_user(user.id, now)

    conflicts = await detect_conflicts(res_repo, room_id=room.id, occurrences=occurrences)

    for index, (occurrence, has_conflict) in enumerate(zip(occurrences, conflicts)):
        snapshot = RuleSnapshot(
            room_capacity=room.capacity,
            max_capacity_allowed=user.max_capacity_allowed,
            is_admin=user.is_admin,
            future_reservations=future_reservations,
            has_conflict=has_conflict,
        )
        violations = validate_occurrence(request, occurrence, snapshot)
        if violations:
            logger.info(
                "reservation rejected room_id=%s user_id=%s occurrence=%d/%d violations=%d",
                room.id,
                user.id,
                index + 1,
                len(occurrences),
                len(violations),
            )
            raise ReservationRejectedError(violations)

    return await res_repo.create_many(
        room_id=room.id,
        user_id=user.id,
        title=request.title,
        intervals=[(to_utc_naive(o.starts_at), to_utc_naive(o.ends_at)) for o in occurrences],
        recurring=request.recurring,
        recurring_until=request.recurring_until,
    )


async def cancel_reservation(
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    clock: Clock = system_clock,
) -> tuple[Reservation, bool]:
    """Returns the reservation and whether this call cancelled it."""
    reservation = await res_repo.get_for_update(reservation_id)
    if reservation is None:
        raise ReservationNotFoundError("reservation not found")
    # Idempotent: already cancelled returns as-is
    if reservation.cancelled_at is not None:
        return reservation, False

    now = clock()
    if not can_cancel(reservation.starts_at.replace(tzinfo=timezone.utc), now):
        raise CancelNotAllowedError(CANCEL_LEAD_TIME_MESSAGE)

    reservation.cancelled_at = to_utc_naive(now)
    reservation.updated_at = to_utc_naive(now)
    updated = await res_repo.cancel(reservation)
    return updated, True


async def list_reservations(res_repo: ReservationRepository) -> list[Reservation]:
    return await res_repo.list_all()


async def get_reservation(res_repo: ReservationRepository, *, reservation_id: int) -> Reservation:
    reservation = await res_repo.get(reservation_id)
    if reservation is None:
        raise ReservationNotFoundError("reservation not found")
    return reservation
