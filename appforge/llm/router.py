"""
Model router for selecting the model used by each generation feature.
"""
import logging
from appforge.core.config import OPENAI_MODEL

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"

# Feature -> model mapping
MODEL_ROUTING = {
    "prompt_enhance": "gpt-4o-mini",  # Cheap, short output
    "icon_design": "gpt-4o-mini",  # Tiny JSON
    "describe_app": "gpt-4o-mini",
    "code_generation": "gpt-4o",  # Long structured output needs the better model
}


def get_model_for_feature(feature: str) -> str:
    """
    Get the model for a feature.
    
    OPENAI_MODEL, when set, overrides the table for every feature.
    
    Args:
        feature: Feature name (e.g., "prompt_enhance", "code_generation")
        
    Returns:
        Model identifier string
    """
    if OPENAI_MODEL:
        return OPENAI_MODEL
    return MODEL_ROUTING.get(feature, DEFAULT_MODEL)

