"""
Flutter code synthesis.

Asks the model for a {files, structure, readme} bundle, retrying transient
failures with exponential backoff, and falls back to the static template
when the model cannot deliver.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from appforge.core.errors import GenerationUnavailable
from appforge.llm.provider import ModelClient
from appforge.llm.router import get_model_for_feature
from appforge.schemas.generation import ProjectBundle
from appforge.services.fallback_template import build_fallback_bundle

logger = logging.getLogger(__name__)

# 3 attempts means 2 backoff waits (2s, 4s); an 8s wait only follows a 4th attempt
MAX_ATTEMPTS = 3
BASE_DELAY_SECONDS = 2.0

SleepFn = Callable[[float], Awaitable[Any]]


@dataclass
class AppGenerationRequest:
    app_name: str
    prompt: str
    backend: str
    icon_url: Optional[str] = None


@dataclass
class SynthesisResult:
    bundle: ProjectBundle
    source: str  # "ai" | "fallback"
    attempts: int


CODEGEN_SYSTEM_PROMPT = """You are an expert Flutter developer. Generate a complete Flutter app based on the user's requirements.

Create a production-ready Flutter app with:
1. Proper project structure
2. Material 3 design
3. Clean, maintainable code
4. Proper state management
5. Navigation between screens
6. {backend} backend integration
7. Authentication if needed
8. Responsive design

Return a JSON response with:
- files: object with file paths as keys and file contents as values
- structure: array of file paths showing the project structure
- readme: markdown documentation for the app

Focus on creating a realistic, functional app that matches the description exactly."""


def backoff_delay(attempt: int) -> float:
    """Delay after failed attempt number ``attempt`` (1-based): 2s, 4s, 8s..."""
    return BASE_DELAY_SECONDS * (2 ** (attempt - 1))


def _build_user_prompt(request: AppGenerationRequest) -> str:
    # Data URIs are large and useless to the model
    if request.icon_url and not request.icon_url.startswith("data:"):
        icon_line = f"Icon URL: {request.icon_url}"
    elif request.icon_url:
        icon_line = "An app icon has already been generated"
    else:
        icon_line = "Generate appropriate icons"
    return f"""Create a Flutter app with these specifications:

App Name: {request.app_name}
Backend: {request.backend}
{icon_line}

Description: {request.prompt}

Generate the complete Flutter project with all necessary files, proper navigation, and {request.backend} integration."""


def parse_bundle(data: Dict[str, Any]) -> ProjectBundle:
    """
    Validate a model-produced bundle.

    Raises:
        ValueError: if files/structure are missing or have the wrong shape
    """
    files = data.get("files")
    structure = data.get("structure")
    if not isinstance(files, dict) or not isinstance(structure, list):
        raise ValueError("response must contain 'files' object and 'structure' array")
    if not files:
        raise ValueError("response contained no files")

    clean_files = {}
    for path, content in files.items():
        path = str(path).strip()
        if not path or path.startswith("/") or ".." in path.split("/"):
            logger.warning(f"Dropping unsafe path from model bundle: {path!r}")
            continue
        clean_files[path] = content if isinstance(content, str) else str(content)

    readme = data.get("readme")
    return ProjectBundle(
        files=clean_files,
        structure=[str(p) for p in structure],
        readme=readme if isinstance(readme, str) else "",
    )


async def request_bundle(client: ModelClient, request: AppGenerationRequest) -> ProjectBundle:
    """
    One structured model request for a bundle.

    Raises:
        GenerationUnavailable: on call failure or an unusable response
    """
    data = await client.complete_structured(
        CODEGEN_SYSTEM_PROMPT.format(backend=request.backend),
        _build_user_prompt(request),
        model=get_model_for_feature("code_generation"),
        temperature=0.7,
        max_tokens=4000,
    )
    try:
        return parse_bundle(data)
    except ValueError as e:
        raise GenerationUnavailable(f"Malformed project bundle: {e}", cause=e) from e


async def synthesize_project(
    client: ModelClient,
    request: AppGenerationRequest,
    sleep: SleepFn = asyncio.sleep,
    max_attempts: int = MAX_ATTEMPTS,
) -> SynthesisResult:
    """
    Generate a project bundle, falling back to the template.

    Transient failures are retried up to ``max_attempts`` times with
    exponential backoff. Client-side errors (400/401/403) stop retrying
    immediately.

    Args:
        client: Model client
        request: Generation request
        sleep: Coroutine used for backoff waits
        max_attempts: Attempt cap

    Returns:
        SynthesisResult with the bundle, its source and the attempt count
    """
    attempts = 0
    while attempts < max_attempts:
        attempts += 1
        try:
            bundle = await request_bundle(client, request)
            logger.info(
                f"Project bundle generated by model: app_name={request.app_name}, "
                f"files={len(bundle.files)}, attempts={attempts}"
            )
            return SynthesisResult(bundle=bundle, source="ai", attempts=attempts)
        except GenerationUnavailable as e:
            if e.client_error:
                logger.warning(f"Code generation rejected by provider, not retrying: {e}")
                break
            if attempts >= max_attempts:
                logger.error(f"Code generation failed after {attempts} attempts: {e}")
                break
            delay = backoff_delay(attempts)
            logger.warning(
                f"Code generation attempt {attempts}/{max_attempts} failed: {e}. "
                f"Retrying in {delay:.1f}s..."
            )
            await sleep(delay)

    logger.info(f"Using fallback template: app_name={request.app_name}, backend={request.backend}")
    bundle = build_fallback_bundle(request.app_name, request.prompt, request.backend)
    return SynthesisResult(bundle=bundle, source="fallback", attempts=attempts)


BACKEND_CONFIG_FILES = {
    "firebase": {
        "android/app/google-services.json": """{
  "project_info": {
    "project_number": "your-project-number",
    "project_id": "your-project-id"
  }
}
""",
        "lib/firebase_options.dart": """// Firebase configuration
import 'package:firebase_core/firebase_core.dart' show FirebaseOptions;

class DefaultFirebaseOptions {
  static FirebaseOptions get currentPlatform => android;

  static const FirebaseOptions android = FirebaseOptions(
    apiKey: 'your-api-key',
    appId: 'your-app-id',
    messagingSenderId: 'your-sender-id',
    projectId: 'your-project-id',
  );
}
""",
    },
    "supabase": {
        "lib/supabase_config.dart": """const String supabaseUrl = 'your-supabase-url';
const String supabaseAnonKey = 'your-anon-key';
""",
    },
    "nodejs": {
        "lib/api_config.dart": """const String apiBaseUrl = 'your-api-url';
const String apiKey = 'your-api-key';
""",
    },
}


def add_backend_configuration(bundle: ProjectBundle, backend: str) -> ProjectBundle:
    """
    Add backend-specific config files to a bundle (in place) and return it.

    firebase adds two files, supabase and nodejs one each.
    """
    for path, content in BACKEND_CONFIG_FILES.get(backend, {}).items():
        bundle.files[path] = content
        if path not in bundle.structure:
            bundle.structure.append(path)
    return bundle
