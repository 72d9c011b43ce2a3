"""
App icon generation.

Two tiers: ask the model for a design specification (colours, symbol, style),
and fall back to a keyword table when that fails. Either way the spec is
rendered into the same SVG template, so a usable icon always comes back.
"""
import base64
import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, Optional
from xml.sax.saxutils import escape

from pydantic import ValidationError as PydanticValidationError

from appforge.llm.provider import ModelClient
from appforge.llm.router import get_model_for_feature
from appforge.schemas.generation import DesignSpec

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "Modern mobile application icon"
ICON_SIZE = 512
CORNER_RADIUS = 112

# (keywords, primary, secondary, symbol, style); first match wins
KEYWORD_DESIGNS = [
    (("fit", "health", "workout", "gym", "exercise"), "#10B981", "#F59E0B", "💪", "modern"),
    (("chat", "social", "message", "messenger", "community"), "#3B82F6", "#8B5CF6", "💬", "playful"),
    (("food", "recipe", "restaurant", "cook", "meal"), "#EF4444", "#F97316", "🍔", "playful"),
    (("finance", "bank", "money", "budget", "expense", "wallet"), "#059669", "#0EA5E9", "💰", "professional"),
    (("music", "audio", "song", "podcast"), "#EC4899", "#8B5CF6", "🎵", "playful"),
    (("travel", "trip", "flight", "hotel", "map"), "#0EA5E9", "#14B8A6", "✈️", "modern"),
    (("learn", "education", "study", "course", "school", "quiz"), "#6366F1", "#F59E0B", "📚", "professional"),
    (("shop", "store", "ecommerce", "cart", "market"), "#F97316", "#DB2777", "🛒", "modern"),
    (("photo", "camera", "gallery", "picture"), "#8B5CF6", "#EC4899", "📷", "minimal"),
    (("weather", "forecast", "climate"), "#38BDF8", "#6366F1", "⛅", "minimal"),
    (("task", "todo", "note", "productivity", "planner"), "#2563EB", "#22C55E", "✅", "professional"),
]

# Colour pairs for the first-letter default
FALLBACK_PALETTE = [
    ("#6366F1", "#8B5CF6"),
    ("#0EA5E9", "#2563EB"),
    ("#10B981", "#059669"),
    ("#F59E0B", "#EF4444"),
    ("#EC4899", "#8B5CF6"),
    ("#14B8A6", "#0EA5E9"),
]

ICON_DESIGN_SYSTEM_PROMPT = """You are a senior mobile app icon designer. Choose a design for the app icon described by the user.

Return ONLY a JSON object with:
- primary_color: hex colour like "#3B82F6"
- secondary_color: hex colour like "#8B5CF6" (used for the gradient end)
- symbol: a single emoji or a single uppercase letter that represents the app
- style: one of "modern", "minimal", "playful", "professional"
"""


@dataclass
class IconResult:
    """Rendered icon plus the spec it came from."""
    svg: str
    data_uri: str
    design_spec: DesignSpec
    source: str  # "ai" | "fallback"


def _parse_design_spec(data: Dict[str, Any]) -> DesignSpec:
    """Accept snake_case or camelCase keys from the model."""
    return DesignSpec(
        primary_color=str(data.get("primary_color") or data.get("primaryColor") or ""),
        secondary_color=str(data.get("secondary_color") or data.get("secondaryColor") or ""),
        symbol=str(data.get("symbol") or "").strip(),
        style=str(data.get("style") or "modern").strip().lower(),
    )


def fallback_design_spec(
    app_name: str,
    description: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> DesignSpec:
    """
    Pick a design from the keyword table, or a letter icon on a random palette.

    Args:
        app_name: App name
        description: Free-text description
        rng: Random source for the palette choice (module random by default)

    Returns:
        DesignSpec
    """
    haystack = f"{app_name} {description or ''}".lower()
    for keywords, primary, secondary, symbol, style in KEYWORD_DESIGNS:
        if any(keyword in haystack for keyword in keywords):
            return DesignSpec(
                primary_color=primary,
                secondary_color=secondary,
                symbol=symbol,
                style=style,
            )

    rng = rng or random
    primary, secondary = rng.choice(FALLBACK_PALETTE)
    letter = next((ch for ch in app_name if ch.isalnum()), "A").upper()
    return DesignSpec(
        primary_color=primary,
        secondary_color=secondary,
        symbol=letter,
        style="modern",
    )


def _decorations(style: str) -> str:
    if style == "playful":
        return (
            '<circle cx="104" cy="112" r="22" fill="#FFFFFF" fill-opacity="0.35"/>'
            '<circle cx="412" cy="392" r="30" fill="#FFFFFF" fill-opacity="0.25"/>'
            '<circle cx="400" cy="120" r="12" fill="#FFFFFF" fill-opacity="0.4"/>'
        )
    if style == "modern":
        return (
            '<circle cx="420" cy="96" r="18" fill="#FFFFFF" fill-opacity="0.3"/>'
            '<circle cx="92" cy="420" r="14" fill="#FFFFFF" fill-opacity="0.2"/>'
        )
    return ""


def render_icon_svg(spec: DesignSpec) -> str:
    """Render a design spec into the square icon template."""
    symbol = escape(spec.symbol)
    font_size = 260 if spec.symbol.isalnum() else 230
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{ICON_SIZE}" height="{ICON_SIZE}" '
        f'viewBox="0 0 {ICON_SIZE} {ICON_SIZE}">'
        '<defs>'
        '<linearGradient id="bg" x1="0%" y1="0%" x2="100%" y2="100%">'
        f'<stop offset="0%" stop-color="{spec.primary_color}"/>'
        f'<stop offset="100%" stop-color="{spec.secondary_color}"/>'
        '</linearGradient>'
        '</defs>'
        f'<rect width="{ICON_SIZE}" height="{ICON_SIZE}" rx="{CORNER_RADIUS}" ry="{CORNER_RADIUS}" fill="url(#bg)"/>'
        f'{_decorations(spec.style)}'
        f'<text x="{ICON_SIZE // 2}" y="{ICON_SIZE // 2}" text-anchor="middle" dominant-baseline="central" '
        'font-family="-apple-system, Segoe UI, Roboto, Helvetica, Arial, sans-serif" '
        f'font-size="{font_size}" font-weight="700" fill="#FFFFFF">{symbol}</text>'
        '</svg>'
    )


def svg_data_uri(svg: str) -> str:
    encoded = base64.b64encode(svg.encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


async def generate_app_icon(
    client: ModelClient,
    app_name: str,
    description: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> IconResult:
    """
    Produce an app icon. Never raises for model failures.

    Args:
        client: Model client
        app_name: App name (non-empty)
        description: Free-text description (defaults to a generic phrase)
        rng: Random source for the fallback palette

    Returns:
        IconResult with SVG markup, data URI, design spec and source
    """
    description = (description or "").strip() or DEFAULT_DESCRIPTION
    user_prompt = f'App name: "{app_name}"\nDescription: {description[:2000]}'

    try:
        data = await client.complete_structured(
            ICON_DESIGN_SYSTEM_PROMPT,
            user_prompt,
            model=get_model_for_feature("icon_design"),
            temperature=0.8,
            max_tokens=300,
        )
        spec = _parse_design_spec(data)
        source = "ai"
        logger.info(f"Icon design generated by model: app_name={app_name}, style={spec.style}")
    except PydanticValidationError as e:
        logger.warning(f"Model icon design was invalid, using fallback: {e.error_count()} errors")
        spec = fallback_design_spec(app_name, description, rng)
        source = "fallback"
    except Exception as e:
        logger.warning(f"Icon design generation failed, using fallback: {e}")
        spec = fallback_design_spec(app_name, description, rng)
        source = "fallback"

    svg = render_icon_svg(spec)
    return IconResult(svg=svg, data_uri=svg_data_uri(svg), design_spec=spec, source=source)
