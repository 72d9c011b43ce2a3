from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer

from appforge.core.security import decode_access_token
from appforge.llm.provider import ModelClient
from appforge.schemas.user import UserRecord
from appforge.services.app_generator import AppGenerator
from appforge.services.storage import JobStore

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/register")


def get_store(request: Request) -> JobStore:
    """Job store dependency, created at startup."""
    return request.app.state.store


def get_model_client(request: Request) -> ModelClient:
    return request.app.state.model_client


def get_generator(request: Request) -> AppGenerator:
    return request.app.state.generator


def get_uploads_dir(request: Request) -> str:
    return request.app.state.uploads_dir


def get_current_user_id(token: str = Depends(oauth2_scheme)) -> str:
    """Get current user id from JWT token."""
    user_id = decode_access_token(token)
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user_id


async def get_current_user(
    user_id: str = Depends(get_current_user_id),
    store: JobStore = Depends(get_store),
) -> UserRecord:
    """Get current user record from JWT token."""
    user = await store.get_user(user_id)
    if not user:
        raise HTTPException(
            status_code=404,
            detail="User not found"
        )
    return user
