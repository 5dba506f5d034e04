from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_session
from ..domain.errors import UserNotFoundError
from ..infrastructure.repositories import SqlAlchemyUserRepository
from ..schemas import UserCreate, UserEnvelope, UserListEnvelope, UserRead
from ..usecases import users as user_usecase
from ..utils.audit_log import emit_audit_log

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=UserListEnvelope)
async def list_users(session: AsyncSession = Depends(get_session)) -> UserListEnvelope:
    user_repo = SqlAlchemyUserRepository(session)
    rows = await user_usecase.list_users(user_repo)
    return UserListEnvelope(users=[UserRead.from_db(user=u) for u in rows])


@router.get("/{user_id}", response_model=UserEnvelope)
async def get_user(
    user_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> UserEnvelope:
    user_repo = SqlAlchemyUserRepository(session)
    try:
        user = await user_usecase.get_user(user_repo, user_id=user_id)
    except UserNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user not found")
    return UserEnvelope(user=UserRead.from_db(user=user))


@router.post("", response_model=UserEnvelope, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    session: AsyncSession = Depends(get_session),
) -> UserEnvelope:
    user_repo = SqlAlchemyUserRepository(session)
    async with session.begin():
        user = await user_usecase.create_user(
            user_repo,
            name=payload.name,
            email=payload.email,
            department=payload.department,
            max_capacity_allowed=payload.max_capacity_allowed,
            is_admin=payload.is_admin,
        )
        try:
            emit_audit_log(action="user.created", actor_id=None, user_id=user.id)
        except RuntimeError:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")
    return UserEnvelope(user=UserRead.from_db(user=user))
