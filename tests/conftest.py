"""
Shared fixtures: in-memory store, scripted model clients and a generator that
never really sleeps.
"""
import json
import random
from typing import Any, Dict, List, Optional

import pytest

from appforge.core.errors import GenerationUnavailable
from appforge.llm.provider import LLMResponse, ModelClient
from appforge.services.app_generator import AppGenerator
from appforge.services.description_parser import PARSE_SYSTEM_PROMPT
from appforge.services.icon_service import ICON_DESIGN_SYSTEM_PROMPT
from appforge.services.prompt_enhancer import ENHANCE_SYSTEM_PROMPT
from appforge.services.storage import MemoryJobStore


def _feature_for(system: str) -> str:
    if system == ENHANCE_SYSTEM_PROMPT:
        return "enhance"
    if system == ICON_DESIGN_SYSTEM_PROMPT:
        return "icon"
    if system == PARSE_SYSTEM_PROMPT:
        return "parse"
    if system.startswith("You are an expert Flutter developer"):
        return "codegen"
    return "unknown"


class ScriptedModelClient(ModelClient):
    """
    Fake provider driven by a per-feature script.

    Each feature maps to a list of outcomes consumed in order (the last one
    repeats). An outcome is a str (raw content), a dict (sent as JSON) or an
    exception instance (raised). Unscripted features fail as client errors.
    """

    def __init__(self, script: Optional[Dict[str, Any]] = None):
        self.script = {k: v if isinstance(v, list) else [v] for k, v in (script or {}).items()}
        self.calls: List[Dict[str, Any]] = []

    def calls_for(self, feature: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["feature"] == feature]

    async def complete(
        self,
        system: str,
        user: str,
        model: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        feature = _feature_for(system)
        self.calls.append({"feature": feature, "user": user, "model": model, "json_mode": json_mode})

        outcomes = self.script.get(feature)
        if not outcomes:
            raise GenerationUnavailable(f"{feature} not scripted", client_error=True)
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]

        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, dict):
            outcome = json.dumps(outcome)
        return LLMResponse(content=outcome, model=model)


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def transient_error(message: str = "Request timed out") -> GenerationUnavailable:
    return GenerationUnavailable(message, upstream_status=503)


def unauthorized_error() -> GenerationUnavailable:
    return GenerationUnavailable("Incorrect API key provided", upstream_status=401, client_error=True)


def model_bundle(app_name: str = "FitTrack") -> Dict[str, Any]:
    return {
        "files": {
            "pubspec.yaml": f"name: {app_name.lower()}\n",
            "lib/main.dart": "void main() {}\n",
        },
        "structure": ["pubspec.yaml", "lib/main.dart"],
        "readme": f"# {app_name}\n",
    }


@pytest.fixture
def store():
    return MemoryJobStore()


@pytest.fixture
async def user(store):
    return await store.create_user({"email": "dev@example.com", "name": "Dev User"})


@pytest.fixture
def offline_client():
    """Every model call fails as a client error."""
    return ScriptedModelClient()


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def downloads_dir(tmp_path):
    return str(tmp_path / "downloads")


@pytest.fixture
def make_generator(store, downloads_dir, sleep_recorder):
    def _make(client: ModelClient, job_store=None, **overrides) -> AppGenerator:
        options = {
            "downloads_dir": downloads_dir,
            "step_delay_scale": 0,
            "sleep": sleep_recorder,
            "rng": random.Random(7),
        }
        options.update(overrides)
        return AppGenerator(job_store or store, client, **options)
    return _make
