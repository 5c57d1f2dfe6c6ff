"""Shared test fixtures and helpers."""

import sys
from pathlib import Path

import pytest
import yaml

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from session_allow.config import Configuration
from session_allow.types import RequestSignal

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> dict:
    """Load a YAML test fixture."""
    path = FIXTURES_DIR / f"{name}.yaml"
    with open(path) as f:
        return yaml.safe_load(f)


def make_signal(check: dict) -> RequestSignal:
    """Build a RequestSignal from a fixture check entry."""
    return RequestSignal(
        path=check.get("path"),
        host=check.get("host", ""),
        has_login_credential=check.get("login", False),
        upstream_verdict=check.get("upstream"),
        query_path=check.get("it"),
    )


@pytest.fixture
def deny_list_config():
    """Deny-list configuration with one denied host and one path rule."""
    return Configuration(
        default_allow=True,
        deny_hosts=["a.example"],
        deny_path_rules=["/private/*"],
        admin_path_prefix="/processwire/",
    )
