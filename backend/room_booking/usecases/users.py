from ..domain.errors import UserNotFoundError
from ..domain.repositories import UserRepository
from ..models import User


async def list_users(user_repo: UserRepository) -> list[User]:
    return await user_repo.list_all()


async def get_user(user_repo: UserRepository, *, user_id: int) -> User:
    user = await user_repo.get(user_id)
    if user is None:
        raise UserNotFoundError("user not found")
    return user


async def create_user(
    user_repo: UserRepository,
    *,
    name: str,
    email: str,
    department: str | None,
    max_capacity_allowed: int,
    is_admin: bool,
):
    return await user_repo.create(
        name=name,
        email=email,
        department=department,
        max_capacity_allowed=max_capacity_allowed,
        is_admin=is_admin,
    )
