"""Test configuration and fixtures."""

import json
from pathlib import Path

import pytest

from monitor_pprof.core.config.settings import ServiceSettings
from tests.support import ThreadedSourceBuilder


@pytest.fixture
def source_builder() -> ThreadedSourceBuilder:
    """Builder for a stack source with a single named thread."""
    return ThreadedSourceBuilder()


@pytest.fixture
def settings() -> ServiceSettings:
    """Service settings pointing at a fake agent."""
    service_settings = ServiceSettings()
    service_settings.controller.dotnet_monitor_url = "http://agent:52323"
    return service_settings


@pytest.fixture
def speedscope_document() -> dict:
    """Evented speedscope document shaped like dotnet-trace output."""
    return {
        "$schema": "https://www.speedscope.app/file-format-schema.json",
        "shared": {"frames": [{"name": "Program.Main"}, {"name": "Worker.Run"}]},
        "profiles": [
            {
                "type": "evented",
                "name": "Thread (7)",
                "unit": "milliseconds",
                "startValue": "0",
                "endValue": "10",
                "events": [
                    {"type": "O", "frame": 0, "at": 0},
                    {"type": "O", "frame": 1, "at": 2},
                    {"type": "C", "frame": 1, "at": 5},
                    {"type": "C", "frame": 0, "at": 10},
                ],
            }
        ],
        "exporter": "dotnet-trace",
    }


@pytest.fixture
def speedscope_file(tmp_path: Path, speedscope_document: dict) -> Path:
    """The evented document written to disk."""
    path = tmp_path / "profile.speedscope.json"
    path.write_text(json.dumps(speedscope_document), encoding="utf-8")
    return path
