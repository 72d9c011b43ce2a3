import logging

from fastapi import APIRouter, Depends, HTTPException

from appforge.core.auth_dependency import get_store
from appforge.core.security import create_access_token
from appforge.schemas.user import AuthResponse, FirebaseAuthRequest, RegisterRequest
from appforge.services.storage import JobStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


# ✅ EMAIL REGISTRATION
@router.post("/register", response_model=AuthResponse)
async def register(payload: RegisterRequest, store: JobStore = Depends(get_store)):
    existing_user = await store.get_user_by_email(payload.email)
    if existing_user:
        raise HTTPException(status_code=400, detail="User already exists")

    user = await store.create_user(payload.model_dump())
    token = create_access_token({"sub": user.id})

    return {
        "user": user,
        "access_token": token,
        "token_type": "bearer"
    }


# ✅ FIREBASE (GOOGLE) SIGN-IN
@router.post("/firebase", response_model=AuthResponse)
async def firebase_sign_in(payload: FirebaseAuthRequest, store: JobStore = Depends(get_store)):
    """
    Sign in with a Firebase uid, creating the user on first visit.

    An existing email account gets linked to the uid instead of duplicated.
    """
    user = await store.get_user_by_firebase_uid(payload.firebase_uid)

    if not user:
        by_email = await store.get_user_by_email(payload.email)
        if by_email:
            user = await store.update_user(by_email.id, {
                "firebase_uid": payload.firebase_uid,
                "provider": "google",
                "photo_url": payload.photo_url or by_email.photo_url,
            })
            logger.info(f"Linked Firebase uid to existing user: user_id={user.id}")
        else:
            user = await store.create_user({
                "email": payload.email,
                "name": payload.name,
                "photo_url": payload.photo_url,
                "provider": "google",
                "firebase_uid": payload.firebase_uid,
            })

    token = create_access_token({"sub": user.id})

    return {
        "user": user,
        "access_token": token,
        "token_type": "bearer"
    }
