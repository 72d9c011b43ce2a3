import hashlib
import logging

from fastapi import APIRouter

from appforge.schemas.generation import ContactRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Contact"])


def _email_hash(email: str) -> str:
    return hashlib.sha256(email.strip().lower().encode()).hexdigest()[:12]


# ✅ CONTACT FORM (logged only, no mail delivery)
@router.post("/contact")
async def contact(payload: ContactRequest):
    # sender identity and message body stay out of the logs
    logger.info(
        f"Contact form submission: subject={payload.subject!r}, "
        f"email_hash={_email_hash(payload.email)}, message_chars={len(payload.message)}"
    )
    return {"success": True, "message": "Message sent successfully"}
