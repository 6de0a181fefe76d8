import logging

from fastapi import APIRouter, HTTPException, status, Depends
from app.models.user import UserCreate, UserLogin, UserResponse, UserUpdate
from app.db.mongo import get_db
from app.repositories.user_repo import UserRepository
from app.core.auth import create_access_token, get_current_user
from app.core.errors import FieldValidationError
from app.core.security import verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def _token_response(user) -> dict:
    return {
        "access_token": create_access_token(str(user.id)),
        "token_type": "bearer",
        "user": user.to_response().model_dump(by_alias=True, mode="json")
    }


def _taken(field: str, verb: str = "registered") -> FieldValidationError:
    return FieldValidationError({field: f"This {field} is already {verb}"})


@router.post("/register", response_model=dict, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, db = Depends(get_db)):
    """Create a new user account."""
    user_repo = UserRepository(db)

    conflict = await user_repo.find_conflict(email=user_data.email, username=user_data.username)
    if conflict:
        raise _taken(conflict)

    user = await user_repo.create_user(user_data)
    logger.info("Registered user %s", user.id)
    return _token_response(user)


@router.post("/login", response_model=dict)
async def login(credentials: UserLogin, db = Depends(get_db)):
    """Login with email and password."""
    user_repo = UserRepository(db)

    user = await user_repo.get_user_by_email(credentials.email)
    if not user or not verify_password(credentials.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid login credentials"
        )

    return _token_response(user)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: UserResponse = Depends(get_current_user)):
    """Get current user details."""
    return current_user


@router.patch("/me", response_model=UserResponse)
async def update_me(
    update_data: UserUpdate,
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    """Update the current user's profile (whitelisted fields only)."""
    user_repo = UserRepository(db)
    changes = update_data.model_dump(exclude_none=True)
    if not changes:
        return current_user

    existing = await user_repo.get_user_by_id(current_user.id)
    if existing is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    conflict = await user_repo.find_conflict(
        email=changes.get("email"),
        username=changes.get("username"),
        exclude_id=existing.id
    )
    if conflict:
        raise _taken(conflict, "taken")

    user = await user_repo.update_user(current_user.id, changes)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )
    return user.to_response()


@router.post("/logout")
async def logout(current_user: UserResponse = Depends(get_current_user)):
    """Tokens are stateless; the client just drops it."""
    return {"message": "Logged out successfully"}
