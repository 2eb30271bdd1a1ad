from fastapi import APIRouter, Depends

from identity_sync.api.http.deps import get_current_user
from identity_sync.entities.core.user import User

router = APIRouter(tags=["users"])


@router.get("/me", response_model=User)
async def read_current_user(user: User = Depends(get_current_user)) -> User:
    """Return the stored user linked to the caller's session."""
    return user
