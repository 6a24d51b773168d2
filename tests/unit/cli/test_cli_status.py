"""Unit tests for CLI status commands."""

import io

from rich.console import Console

from sovereign.cli.commands.status import render_overview
from sovereign.cli.main import app
from sovereign.poller import PollSnapshot

SERVICES = {
    "services": [
        {"name": "jellyfin", "running": True, "status": "Up 2 hours", "ports": "8096"},
        {"name": "immich", "running": False, "status": "Exited (1)"},
    ]
}
RESOURCES = {
    "cpu_model": "Ryzen 7",
    "cpu_cores": 8,
    "ram_total_mb": 16384,
    "disk_total_gb": 500,
    "disk_free_gb": 100,
}
AI_STATUS = {"running": True, "model": "qwen2.5:7b", "engine": "llama-server", "gpu_tier": "cpu"}


def render(renderable) -> str:
    console = Console(file=io.StringIO(), width=120)
    console.print(renderable)
    return console.file.getvalue()


class TestStatus:
    """Test status command."""

    def test_status_shows_every_section(self, runner, dashboard):
        dashboard.routes.update({"/status": SERVICES, "/resources": RESOURCES, "/ai/status": AI_STATUS})

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "jellyfin" in result.stdout
        assert "1/2 running" in result.stdout
        assert "80% used" in result.stdout
        assert "qwen2.5:7b" in result.stdout

    def test_failing_section_reported_alone(self, runner, dashboard):
        dashboard.routes.update({"/status": SERVICES, "/resources": (500, b"boom"), "/ai/status": AI_STATUS})

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "jellyfin" in result.stdout
        assert "unavailable" in result.stdout
        assert "qwen2.5:7b" in result.stdout

    def test_url_option_passed_to_client(self, runner, dashboard):
        dashboard.routes.update({"/status": SERVICES, "/resources": RESOURCES, "/ai/status": AI_STATUS})

        result = runner.invoke(app, ["--url", "http://nas.local:8080", "status"])

        assert result.exit_code == 0
        assert dashboard.urls == ["http://nas.local:8080"]


class TestRenderOverview:
    def test_stale_data_marked(self):
        snapshots = {
            "services": PollSnapshot(data=[], error=None),
            "resources": PollSnapshot(data=None, error="HTTP 502 from /resources", failures=1),
            "ai": PollSnapshot(data=None),
        }

        output = render(render_overview(snapshots))

        assert "unavailable: HTTP 502" in output
        assert "waiting" in output


class TestVersion:
    def test_version(self, runner):
        from sovereign import __version__

        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.stdout
