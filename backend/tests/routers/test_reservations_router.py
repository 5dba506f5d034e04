from datetime import datetime, timedelta, timezone
from typing import Any, cast

import pytest
from fakes import MONDAY, NOW, local
from room_booking.domain.errors import CancelNotAllowedError, ReservationRejectedError, RoomNotFoundError
from room_booking.domain.services import OVERLAP_MESSAGE, BookingRequest, Violation
from room_booking.models import RecurrenceFrequency, Reservation
from room_booking.routers import reservations as router
from room_booking.schemas import ReservationCreate
from room_booking.utils.clock import fixed_clock
from room_booking.utils.time import to_utc_naive
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession


class DummySession:
    """Minimal async session stub that supports `async with session.begin()`."""

    async def __aenter__(self) -> "DummySession":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False

    def begin(self) -> "DummySession":
        return self


def _reservation(reservation_id: int, weeks: int = 0) -> Reservation:
    day = MONDAY + timedelta(weeks=weeks)
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return Reservation(
        id=reservation_id,
        room_id=1,
        user_id=200,
        title="Planning",
        starts_at=to_utc_naive(local(day, 10)),
        ends_at=to_utc_naive(local(day, 11)),
        recurring=RecurrenceFrequency.WEEKLY,
        recurring_until=MONDAY + timedelta(weeks=1),
        cancelled_at=None,
        created_at=now,
        updated_at=now,
    )


def _payload(**overrides: Any) -> ReservationCreate:
    values: dict[str, Any] = {
        "room_id": 1,
        "title": "Planning",
        "starts_at": local(MONDAY, 10),
        "ends_at": local(MONDAY, 11),
        "recurring": "weekly",
        "recurring_until": MONDAY + timedelta(weeks=1),
    }
    values.update(overrides)
    return ReservationCreate(**values)


def _patch_repos(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(router, "SqlAlchemyRoomRepository", lambda s: s)  # type: ignore[assignment]
    monkeypatch.setattr(router, "SqlAlchemyUserRepository", lambda s: s)  # type: ignore[assignment]
    monkeypatch.setattr(router, "SqlAlchemyReservationRepository", lambda s: s)  # type: ignore[assignment]


@pytest.mark.asyncio
async def test_create_reservation_emits_audit_per_occurrence(monkeypatch: pytest.MonkeyPatch) -> None:
    created = [_reservation(100), _reservation(101, weeks=1)]
    seen: dict[str, Any] = {}

    async def fake_create(*args: object, request: BookingRequest, user_id: int, **kwargs: object) -> list[Reservation]:
        seen["request"] = request
        seen["user_id"] = user_id
        return created

    calls: list[dict[str, Any]] = []

    def fake_emit(**kwargs: Any) -> None:
        calls.append(kwargs)

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "create_reservations", fake_create)  # type: ignore[attr-defined]
    monkeypatch.setattr(router, "emit_audit_log", fake_emit)

    result = await router.create_reservation(
        payload=_payload(),
        session=cast(AsyncSession, DummySession()),
        user_id=200,
        clock=fixed_clock(NOW),
    )

    assert [r.id for r in result.reservations] == [100, 101]
    assert result.reservations[0].starts_at == local(MONDAY, 10)
    assert seen["user_id"] == 200
    assert seen["request"].recurring == RecurrenceFrequency.WEEKLY
    assert seen["request"].starts_at == local(MONDAY, 10)
    assert [c["action"] for c in calls] == ["reservation.created", "reservation.created"]
    assert calls[0]["extra"] == {"batch_size": 2}


@pytest.mark.asyncio
async def test_create_reservation_maps_violations_to_422(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_create(*args: object, **kwargs: object) -> list[Reservation]:
        raise ReservationRejectedError(
            [Violation("ends_at", "must be after start time"), Violation("base", OVERLAP_MESSAGE)]
        )

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "create_reservations", fake_create)  # type: ignore[attr-defined]

    with pytest.raises(HTTPException) as excinfo:
        await router.create_reservation(
            payload=_payload(),
            session=cast(AsyncSession, DummySession()),
            user_id=200,
            clock=fixed_clock(NOW),
        )
    assert excinfo.value.status_code == 422
    assert excinfo.value.detail == {"errors": ["Ends at must be after start time", OVERLAP_MESSAGE]}


@pytest.mark.asyncio
async def test_create_reservation_maps_missing_room_to_404(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_create(*args: object, **kwargs: object) -> list[Reservation]:
        raise RoomNotFoundError("room not found")

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "create_reservations", fake_create)  # type: ignore[attr-defined]

    with pytest.raises(HTTPException) as excinfo:
        await router.create_reservation(
            payload=_payload(),
            session=cast(AsyncSession, DummySession()),
            user_id=200,
            clock=fixed_clock(NOW),
        )
    assert excinfo.value.status_code == 404


@pytest.mark.asyncio
async def test_create_reservation_rejects_naive_timestamps() -> None:
    payload = _payload(starts_at=datetime(2030, 1, 7, 10), ends_at=datetime(2030, 1, 7, 11))
    with pytest.raises(HTTPException) as excinfo:
        await router.create_reservation(
            payload=payload,
            session=cast(AsyncSession, DummySession()),
            user_id=200,
            clock=fixed_clock(NOW),
        )
    assert excinfo.value.status_code == 400


@pytest.mark.asyncio
async def test_cancel_reservation_log_failure_returns_500(monkeypatch: pytest.MonkeyPatch) -> None:
    reservation = _reservation(100)

    async def fake_cancel(*args: object, **kwargs: object) -> tuple[Reservation, bool]:
        reservation.cancelled_at = to_utc_naive(NOW)
        return reservation, True

    def fake_emit(**kwargs: Any) -> None:
        raise RuntimeError("fail log")

    monkeypatch.setattr(router, "SqlAlchemyReservationRepository", lambda s: s)  # type: ignore[assignment]
    monkeypatch.setattr(router.reservation_usecase, "cancel_reservation", fake_cancel)  # type: ignore[attr-defined]
    monkeypatch.setattr(router, "emit_audit_log", fake_emit)

    with pytest.raises(HTTPException) as excinfo:
        await router.cancel_reservation(
            reservation_id=reservation.id,
            session=cast(AsyncSession, DummySession()),
            clock=fixed_clock(NOW),
        )
    assert excinfo.value.status_code == 500


@pytest.mark.asyncio
async def test_cancel_already_cancelled_skips_audit(monkeypatch: pytest.MonkeyPatch) -> None:
    reservation = _reservation(100)
    reservation.cancelled_at = to_utc_naive(NOW)

    async def fake_cancel(*args: object, **kwargs: object) -> tuple[Reservation, bool]:
        return reservation, False

    calls: list[dict[str, Any]] = []

    monkeypatch.setattr(router, "SqlAlchemyReservationRepository", lambda s: s)  # type: ignore[assignment]
    monkeypatch.setattr(router.reservation_usecase, "cancel_reservation", fake_cancel)  # type: ignore[attr-defined]
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: calls.append(kwargs))

    result = await router.cancel_reservation(
        reservation_id=reservation.id,
        session=cast(AsyncSession, DummySession()),
        clock=fixed_clock(NOW),
    )
    assert result.reservation.cancelled_at == NOW
    assert calls == []


@pytest.mark.asyncio
async def test_cancel_inside_lead_time_returns_422(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_cancel(*args: object, **kwargs: object) -> tuple[Reservation, bool]:
        raise CancelNotAllowedError("too late")

    monkeypatch.setattr(router, "SqlAlchemyReservationRepository", lambda s: s)  # type: ignore[assignment]
    monkeypatch.setattr(router.reservation_usecase, "cancel_reservation", fake_cancel)  # type: ignore[attr-defined]

    with pytest.raises(HTTPException) as excinfo:
        await router.cancel_reservation(
            reservation_id=1,
            session=cast(AsyncSession, DummySession()),
            clock=fixed_clock(NOW),
        )
    assert excinfo.value.status_code == 422
    assert excinfo.value.detail == {"error": "too late"}
