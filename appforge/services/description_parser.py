"""
Description parser.

Turns a free-text app description into a structured outline (screens,
features, colours) for the creation wizard. Uses one structured model call
and falls back to keyword matching when the model is unavailable.
"""
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from appforge.llm.provider import ModelClient
from appforge.llm.router import get_model_for_feature
from appforge.schemas.generation import ParsedAppStructure

logger = logging.getLogger(__name__)

ARABIC_PATTERN = re.compile(r"[\u0600-\u06FF\u0750-\u077F\u08A0-\u08FF]")

DEFAULT_SCREENS = ["Home", "Profile", "Settings"]
DEFAULT_SCREENS_AR = ["الرئيسية", "الملف الشخصي", "الإعدادات"]

# keyword -> screen name
SCREEN_KEYWORDS = {
    "login": "Login",
    "sign in": "Login",
    "تسجيل": "Login",
    "dashboard": "Dashboard",
    "chat": "Chat",
    "message": "Chat",
    "محادثة": "Chat",
    "cart": "Cart",
    "checkout": "Checkout",
    "shop": "Products",
    "product": "Products",
    "متجر": "Products",
    "map": "Map",
    "location": "Map",
    "calendar": "Calendar",
    "schedule": "Calendar",
    "workout": "Workouts",
    "exercise": "Workouts",
    "recipe": "Recipes",
    "search": "Search",
    "notification": "Notifications",
    "history": "History",
    "stats": "Statistics",
    "report": "Statistics",
}

# keyword -> feature
FEATURE_KEYWORDS = {
    "login": "User authentication",
    "sign in": "User authentication",
    "account": "User authentication",
    "تسجيل": "User authentication",
    "chat": "Real-time messaging",
    "message": "Real-time messaging",
    "notification": "Push notifications",
    "remind": "Push notifications",
    "payment": "In-app payments",
    "pay": "In-app payments",
    "دفع": "In-app payments",
    "map": "Maps and location",
    "gps": "Maps and location",
    "photo": "Photo upload",
    "camera": "Photo upload",
    "image": "Photo upload",
    "search": "Search",
    "offline": "Offline support",
    "dark mode": "Dark mode",
    "track": "Progress tracking",
    "chart": "Charts and statistics",
    "stats": "Charts and statistics",
    "share": "Social sharing",
}

COLOR_KEYWORDS = {
    "blue": "blue",
    "أزرق": "blue",
    "green": "green",
    "أخضر": "green",
    "red": "red",
    "أحمر": "red",
    "purple": "purple",
    "orange": "orange",
    "pink": "pink",
    "black": "dark",
    "dark": "dark",
}

PARSE_SYSTEM_PROMPT = """You are a mobile product analyst. Read the user's app description (English or Arabic) and extract a structured outline.

Respond with a JSON object:
{
  "app_name": "suggested app name or null",
  "language": "en" or "ar",
  "screens": ["screen names"],
  "features": ["feature names"],
  "color_scheme": "main colour or null",
  "summary": "one sentence summary in the description's language"
}"""


def detect_language(text: str) -> str:
    """'ar' when the text contains Arabic script, else 'en'."""
    return "ar" if ARABIC_PATTERN.search(text or "") else "en"


def _match_keywords(text: str, table: Dict[str, str]) -> List[str]:
    found: List[str] = []
    for keyword, value in table.items():
        if keyword in text and value not in found:
            found.append(value)
    return found


def _summarize(description: str, limit: int = 160) -> str:
    first = re.split(r"(?<=[.!?؟])\s+", description.strip(), maxsplit=1)[0]
    if len(first) > limit:
        first = first[:limit].rstrip() + "..."
    return first


def fallback_parse(description: str, app_name: Optional[str] = None) -> ParsedAppStructure:
    """Deterministic keyword-based outline."""
    language = detect_language(description)
    text = description.lower()

    screens = _match_keywords(text, SCREEN_KEYWORDS)
    if not screens:
        screens = list(DEFAULT_SCREENS_AR if language == "ar" else DEFAULT_SCREENS)
    elif "Home" not in screens:
        screens.insert(0, "Home")

    colors = _match_keywords(text, COLOR_KEYWORDS)
    return ParsedAppStructure(
        app_name=app_name,
        language=language,
        screens=screens,
        features=_match_keywords(text, FEATURE_KEYWORDS),
        color_scheme=colors[0] if colors else None,
        summary=_summarize(description),
    )


def _coerce_parsed(data: Dict[str, Any], description: str, app_name: Optional[str]) -> ParsedAppStructure:
    language = data.get("language")
    if language not in ("en", "ar"):
        language = detect_language(description)
    screens = [str(s) for s in data.get("screens") or [] if str(s).strip()]
    return ParsedAppStructure(
        app_name=app_name or data.get("app_name") or None,
        language=language,
        screens=screens or list(DEFAULT_SCREENS_AR if language == "ar" else DEFAULT_SCREENS),
        features=[str(f) for f in data.get("features") or [] if str(f).strip()],
        color_scheme=data.get("color_scheme") or None,
        summary=str(data.get("summary") or _summarize(description)),
    )


async def parse_app_description(
    client: ModelClient,
    description: str,
    app_name: Optional[str] = None,
) -> ParsedAppStructure:
    """
    Extract screens, features and colours from an app description.

    Never raises for model failures; the keyword fallback is used instead.
    """
    description = description.strip()
    user_prompt = f"App name: {app_name}\n\n{description}" if app_name else description
    try:
        data = await client.complete_structured(
            PARSE_SYSTEM_PROMPT,
            user_prompt,
            model=get_model_for_feature("describe_app"),
            temperature=0.3,
            max_tokens=800,
        )
        parsed = _coerce_parsed(data, description, app_name)
        logger.info(f"Description parsed by model: screens={len(parsed.screens)}, features={len(parsed.features)}")
        return parsed
    except PydanticValidationError as e:
        logger.warning(f"Model description outline was invalid, using keyword parser: {e.error_count()} errors")
    except Exception as e:
        logger.warning(f"Description parsing failed, using keyword parser: {e}")
    return fallback_parse(description, app_name)
