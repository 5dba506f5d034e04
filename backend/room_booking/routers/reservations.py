from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_clock, get_current_user_id, get_session
from ..domain.errors import (
    CancelNotAllowedError,
    ReservationNotFoundError,
    ReservationRejectedError,
    RoomNotFoundError,
    UserNotFoundError,
)
from ..domain.services import BookingRequest
from ..infrastructure.repositories import (
    SqlAlchemyReservationRepository,
    SqlAlchemyRoomRepository,
    SqlAlchemyUserRepository,
)
from ..schemas import ReservationCreate, ReservationEnvelope, ReservationListEnvelope, ReservationRead
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.clock import Clock
from ..utils.time import to_local

router = APIRouter(prefix="/reservations", tags=["reservations"])


def _to_booking_request(payload: ReservationCreate) -> BookingRequest:
    if payload.starts_at.tzinfo is None or payload.ends_at.tzinfo is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="starts_at/ends_at must have timezone")
    return BookingRequest(
        room_id=payload.room_id,
        title=payload.title,
        starts_at=to_local(payload.starts_at),
        ends_at=to_local(payload.ends_at),
        recurring=payload.recurring,
        recurring_until=payload.recurring_until,
    )


@router.post("", response_model=ReservationListEnvelope, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
    clock: Clock = Depends(get_clock),
) -> ReservationListEnvelope:
    request = _to_booking_request(payload)
    room_repo = SqlAlchemyRoomRepository(session)
    user_repo = SqlAlchemyUserRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    async with session.begin():
        try:
            created = await reservation_usecase.create_reservations(
                room_repo,
                user_repo,
                res_repo,
                request=request,
                user_id=user_id,
                clock=clock,
            )
        except (RoomNotFoundError, UserNotFoundError) as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
        except ReservationRejectedError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail={"errors": [v.full_message for v in exc.violations]},
            )

        try:
            for reservation in created:
                emit_audit_log(
                    action="reservation.created",
                    actor_id=user_id,
                    reservation_id=reservation.id,
                    room_id=reservation.room_id,
                    user_id=reservation.user_id,
                    starts_at=reservation.starts_at,
                    ends_at=reservation.ends_at,
                    recurring=reservation.recurring,
                    extra={"batch_size": len(created)},
                )
        except RuntimeError:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")

    return ReservationListEnvelope(reservations=[ReservationRead.from_db(reservation=r) for r in created])


@router.get("", response_model=ReservationListEnvelope)
async def list_reservations(
    session: AsyncSession = Depends(get_session),
) -> ReservationListEnvelope:
    res_repo = SqlAlchemyReservationRepository(session)
    rows = await reservation_usecase.list_reservations(res_repo)
    return ReservationListEnvelope(reservations=[ReservationRead.from_db(reservation=r) for r in rows])


@router.get("/{reservation_id}", response_model=ReservationEnvelope)
async def get_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> ReservationEnvelope:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        reservation = await reservation_usecase.get_reservation(res_repo, reservation_id=reservation_id)
    except ReservationNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="reservation not found")
    return ReservationEnvelope(reservation=ReservationRead.from_db(reservation=reservation))


@router.post("/{reservation_id}/cancel", response_model=ReservationEnvelope)
async def cancel_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> ReservationEnvelope:
    res_repo = SqlAlchemyReservationRepository(session)
    async with session.begin():
        try:
            updated, cancelled_now = await reservation_usecase.cancel_reservation(
                res_repo,
                reservation_id=reservation_id,
                clock=clock,
            )
        except ReservationNotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="reservation not found")
        except CancelNotAllowedError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail={"error": str(exc)})

        if cancelled_now:
            try:
                emit_audit_log(
                    action="reservation.cancelled",
                    actor_id=None,
                    reservation_id=updated.id,
                    room_id=updated.room_id,
                    user_id=updated.user_id,
                    starts_at=updated.starts_at,
                    ends_at=updated.ends_at,
                )
            except RuntimeError:
                raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")

    return ReservationEnvelope(reservation=ReservationRead.from_db(reservation=updated))
