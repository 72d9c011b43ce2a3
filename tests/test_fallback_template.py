"""
Tests for the static Flutter template.
"""
import pytest

from appforge.services.fallback_template import build_fallback_bundle, package_name


def test_fallback_is_deterministic():
    first = build_fallback_bundle("FitTrack", "track workouts", "firebase")
    second = build_fallback_bundle("FitTrack", "track workouts", "firebase")
    assert first.files == second.files
    assert first.structure == second.structure
    assert first.readme == second.readme


def test_fallback_contains_complete_skeleton():
    bundle = build_fallback_bundle("FitTrack", "track workouts", "supabase")

    assert "pubspec.yaml" in bundle.files
    assert "lib/main.dart" in bundle.files
    assert "README.md" in bundle.files
    screens = [p for p in bundle.files if p.startswith("lib/screens/")]
    assert 3 <= len(screens) <= 4
    assert set(bundle.structure) == set(bundle.files)
    assert "supabase_flutter" in bundle.files["pubspec.yaml"]


@pytest.mark.parametrize("backend,expected", [("firebase", True), ("supabase", False), ("nodejs", False)])
def test_firebase_service_only_for_firebase(backend, expected):
    bundle = build_fallback_bundle("FitTrack", "track workouts", backend)
    assert ("lib/services/firebase_service.dart" in bundle.files) is expected


@pytest.mark.parametrize("name,expected", [
    ("FitTrack", "fittrack"),
    ("My Cool App!", "my_cool_app"),
    ("123 Go", "app_123_go"),
    ("تطبيق", "generated_app"),
])
def test_package_name(name, expected):
    assert package_name(name) == expected


def test_prompt_text_is_escaped_in_dart():
    bundle = build_fallback_bundle("Quotes", "Tom's app with $money and \\slashes", "nodejs")
    home = bundle.files["lib/screens/home_screen.dart"]
    assert "Tom\\'s" in home
    assert "\\$money" in home
