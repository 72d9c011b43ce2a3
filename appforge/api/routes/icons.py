"""
Wizard helpers: icon preview and description parsing.

Both endpoints always answer with a usable result; model failures fall back
to the deterministic paths inside the services.
"""
import logging

from fastapi import APIRouter, Depends

from appforge.core.auth_dependency import get_current_user, get_model_client
from appforge.llm.provider import ModelClient
from appforge.schemas.generation import (
    IconRequest,
    IconResponse,
    ParseDescriptionRequest,
    ParsedAppStructure,
)
from appforge.schemas.user import UserRecord
from appforge.services.description_parser import parse_app_description
from appforge.services.icon_service import generate_app_icon

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Design"])


@router.post("/generate-icon", response_model=IconResponse)
async def generate_icon(
    payload: IconRequest,
    user: UserRecord = Depends(get_current_user),
    client: ModelClient = Depends(get_model_client),
):
    result = await generate_app_icon(client, payload.app_name, payload.description)
    logger.info(f"Icon preview generated: user_id={user.id}, source={result.source}")
    return {
        "icon_url": result.data_uri,
        "design_spec": result.design_spec,
        "source": result.source,
        "message": "Icon generated with AI" if result.source == "ai" else "Icon generated with smart fallback",
    }


@router.post("/parse-description", response_model=ParsedAppStructure)
async def parse_description(
    payload: ParseDescriptionRequest,
    user: UserRecord = Depends(get_current_user),
    client: ModelClient = Depends(get_model_client),
):
    return await parse_app_description(client, payload.description, payload.app_name)
