from __future__ import annotations

from datetime import date, datetime, timezone
from typing import List, Optional, Sequence

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.repositories import ReservationRepository, RoomRepository, UserRepository
from ..models import RecurrenceFrequency, Reservation, Room, User


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SqlAlchemyRoomRepository(RoomRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, room_id: int) -> Room | None:
        return await self.session.get(Room, room_id)

    async def get_for_update(self, room_id: int) -> Room | None:
        # Row lock on the room serializes admissions for that room until commit/rollback.
        result = await self.session.scalar(select(Room).where(Room.id == room_id).with_for_update())
        return result if isinstance(result, Room) else None

    async def list_all(self) -> List[Room]:
        rows = await self.session.scalars(select(Room).order_by(Room.id))
        return list(rows.all())

    async def create(
        self,
        *,
        name: str,
        capacity: int,
        has_projector: bool,
        has_video_conference: bool,
        floor: int | None,
    ) -> Room:
        now = _utc_now_naive()
        room = Room(
            name=name,
            capacity=capacity,
            has_projector=has_projector,
            has_video_conference=has_video_conference,
            floor=floor,
            created_at=now,
            updated_at=now,
        )
        self.session.add(room)
        await self.session.flush()
        return room


class SqlAlchemyUserRepository(UserRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, user_id: int) -> User | None:
        return await self.session.get(User, user_id)

    async def list_all(self) -> List[User]:
        rows = await self.session.scalars(select(User).order_by(User.id))
        return list(rows.all())

    async def create(
        self,
        *,
        name: str,
        email: str,
        department: str | None,
        max_capacity_allowed: int,
        is_admin: bool,
    ) -> User:
        now = _utc_now_naive()
        user = User(
            name=name,
            email=email,
            department=department,
            max_capacity_allowed=max_capacity_allowed,
            is_admin=is_admin,
            created_at=now,
            updated_at=now,
        )
        self.session.add(user)
        await self.session.flush()
        return user


class SqlAlchemyReservationRepository(ReservationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def count_future_for_user(
        self,
        user_id: int,
        now: datetime,
    ) -> int:
        stmt = select(func.count(Reservation.id)).where(
            Reservation.user_id == user_id,
            Reservation.cancelled_at.is_(None),
            Reservation.starts_at > now,
        )
        return int(await self.session.scalar(stmt) or 0)

    async def list_active_for_room(
        self,
        room_id: int,
        start: datetime,
        end: datetime,
    ) -> List[Reservation]:
        stmt: Select[tuple[Reservation]] = (
            select(Reservation)
            .where(
                Reservation.room_id == room_id,
                Reservation.cancelled_at.is_(None),
                Reservation.starts_at < end,
                Reservation.ends_at > start,
            )
            .order_by(Reservation.starts_at)
        )
        rows = await self.session.scalars(stmt)
        return list(rows.all())

    async def create_many(
        self,
        *,
        room_id: int,
        user_id: int,
        title: str | None,
        intervals: Sequence[tuple[datetime, datetime]],
        recurring: RecurrenceFrequency | None,
        recurring_until: date | None,
    ) -> List[Reservation]:
        now = _utc_now_naive()
        reservations = [
            Reservation(
                room_id=room_id,
                user_id=user_id,
                title=title,
                starts_at=starts_at,
                ends_at=ends_at,
                recurring=recurring,
                recurring_until=recurring_until,
                cancelled_at=None,
                created_at=now,
                updated_at=now,
            )
            for starts_at, ends_at in intervals
        ]
        self.session.add_all(reservations)
        await self.session.flush()
        return reservations

    async def get(self, reservation_id: int) -> Optional[Reservation]:
        return await self.session.get(Reservation, reservation_id)

    async def get_for_update(self, reservation_id: int) -> Optional[Reservation]:
        result = await self.session.scalar(
            select(Reservation).where(Reservation.id == reservation_id).with_for_update()
        )
        return result if isinstance(result, Reservation) else None

    async def list_all(self) -> List[Reservation]:
        rows = await self.session.scalars(select(Reservation).order_by(Reservation.starts_at, Reservation.id))
        return list(rows.all())

    async def cancel(self, reservation: Reservation) -> Reservation:
        self.session.add(reservation)
        await self.session.flush()
        return reservation
