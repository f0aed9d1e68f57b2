from fastapi import APIRouter, HTTPException
from core.interfaces.repositories import User
from core.users.models import CreateUserRequest, UserItem, UserListResponse
from db.repository_factory import get_user_repository
from utils.logger import logger


router = APIRouter(prefix="/users")


def _to_item(user: User) -> UserItem:
    return UserItem(
        uid=user.uid,
        name=user.name,
        email=user.email,
        role=user.role,
        active=user.active,
        created_on=user.created_on
    )


@router.get("", response_model=UserListResponse)
async def list_users():
    """List users that contacts can be assigned to"""
    try:
        user_repo = await get_user_repository()
        users = await user_repo.get_users()
        return UserListResponse(users=[_to_item(user) for user in users], total=len(users))

    except Exception as e:
        logger.error(f"Error listing users: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("", response_model=UserItem)
async def create_user(request: CreateUserRequest):
    """Create a user, or return the existing one with the same email"""
    if "@" not in request.email:
        raise HTTPException(status_code=400, detail="Invalid email format")

    try:
        user_repo = await get_user_repository()
        user = await user_repo.create_user(request.name.strip(), request.email, role=request.role)
        return _to_item(user)

    except Exception as e:
        logger.error(f"Error creating user: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
