"""
Tests for code synthesis: retry policy, fallback and backend configuration.
"""
import pytest
from conftest import ScriptedModelClient, SleepRecorder, model_bundle, transient_error, unauthorized_error

from appforge.llm.router import get_model_for_feature
from appforge.services.code_synthesizer import (
    AppGenerationRequest,
    add_backend_configuration,
    backoff_delay,
    parse_bundle,
    synthesize_project,
)
from appforge.services.fallback_template import build_fallback_bundle

REQUEST = AppGenerationRequest(app_name="FitTrack", prompt="track workouts", backend="firebase")


def test_backoff_doubles():
    assert [backoff_delay(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]


async def test_model_bundle_on_first_attempt():
    client = ScriptedModelClient({"codegen": model_bundle()})
    sleep = SleepRecorder()

    result = await synthesize_project(client, REQUEST, sleep=sleep)

    assert result.source == "ai"
    assert result.attempts == 1
    assert sleep.delays == []
    assert result.bundle.files["lib/main.dart"] == "void main() {}\n"
    assert client.calls_for("codegen")[0]["json_mode"] is True


async def test_three_transient_failures_then_fallback():
    client = ScriptedModelClient({"codegen": [transient_error(), transient_error(), transient_error()]})
    sleep = SleepRecorder()

    result = await synthesize_project(client, REQUEST, sleep=sleep)

    assert len(client.calls_for("codegen")) == 3
    assert result.attempts == 3
    assert sleep.delays == [2.0, 4.0]
    assert result.source == "fallback"
    assert result.bundle.files == build_fallback_bundle("FitTrack", "track workouts", "firebase").files


async def test_unauthorized_aborts_retries_immediately():
    client = ScriptedModelClient({"codegen": unauthorized_error()})
    sleep = SleepRecorder()

    result = await synthesize_project(client, REQUEST, sleep=sleep)

    assert len(client.calls_for("codegen")) == 1
    assert sleep.delays == []
    assert result.source == "fallback"


async def test_recovers_on_second_attempt():
    client = ScriptedModelClient({"codegen": [transient_error(), model_bundle()]})
    sleep = SleepRecorder()

    result = await synthesize_project(client, REQUEST, sleep=sleep)

    assert result.source == "ai"
    assert result.attempts == 2
    assert sleep.delays == [2.0]


async def test_malformed_bundle_is_retried():
    client = ScriptedModelClient({"codegen": [
        "```json\n{\"files\": {\"a.dart\": \"x\"}}\n```",
        "Sorry, I can't do that.",
        "```json\n" + '{"files": {"lib/main.dart": "void main() {}"}, "structure": ["lib/main.dart"]}' + "\n```",
    ]})
    sleep = SleepRecorder()

    result = await synthesize_project(client, REQUEST, sleep=sleep)

    assert result.source == "ai"
    assert result.attempts == 3
    assert sleep.delays == [2.0, 4.0]
    assert result.bundle.readme == ""


async def test_icon_data_uri_is_not_sent_to_model():
    client = ScriptedModelClient({"codegen": model_bundle()})
    request = AppGenerationRequest(
        app_name="FitTrack", prompt="track workouts", backend="firebase",
        icon_url="data:image/svg+xml;base64,AAAA",
    )

    await synthesize_project(client, request, sleep=SleepRecorder())

    assert "base64" not in client.calls_for("codegen")[0]["user"]


def test_parse_bundle_requires_files_and_structure():
    with pytest.raises(ValueError):
        parse_bundle({"files": {"a": "b"}})
    with pytest.raises(ValueError):
        parse_bundle({"structure": ["a"]})
    with pytest.raises(ValueError):
        parse_bundle({"files": {}, "structure": []})


def test_parse_bundle_drops_unsafe_paths():
    bundle = parse_bundle({
        "files": {"lib/main.dart": "ok", "../etc/passwd": "no", "/abs.dart": "no"},
        "structure": ["lib/main.dart"],
    })
    assert list(bundle.files) == ["lib/main.dart"]


@pytest.mark.parametrize("backend,added", [
    ("firebase", {"android/app/google-services.json", "lib/firebase_options.dart"}),
    ("supabase", {"lib/supabase_config.dart"}),
    ("nodejs", {"lib/api_config.dart"}),
])
def test_backend_configuration_files(backend, added):
    bundle = build_fallback_bundle("FitTrack", "track workouts", backend)
    before = set(bundle.files)

    add_backend_configuration(bundle, backend)

    assert set(bundle.files) - before == added
    assert added <= set(bundle.structure)


async def test_codegen_uses_routed_model(monkeypatch):
    monkeypatch.setattr("appforge.llm.router.OPENAI_MODEL", "")
    client = ScriptedModelClient({"codegen": model_bundle()})

    await synthesize_project(client, REQUEST, sleep=SleepRecorder())

    assert client.calls_for("codegen")[0]["model"] == "gpt-4o"


def test_model_override_applies_to_every_feature(monkeypatch):
    monkeypatch.setattr("appforge.llm.router.OPENAI_MODEL", "gpt-test")

    assert get_model_for_feature("code_generation") == "gpt-test"
    assert get_model_for_feature("prompt_enhance") == "gpt-test"
