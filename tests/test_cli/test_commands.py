"""Tests for CLI commands."""

import asyncio

import pytest
from unittest.mock import AsyncMock, Mock, patch

from berth.cli import commands
from berth.cli.commands import (
    EngineSession,
    apply_containers,
    destroy_container,
    show_plan,
    show_status,
    validate_config,
)
from berth.models.container import ContainerSpec
from berth.models.state import ContainerState


@pytest.fixture
def engine():
    """Create a mocked StateEngine."""
    return AsyncMock()


@pytest.fixture
def session(engine):
    """Create a session running callbacks against the mocked engine."""
    fake = Mock(spec=EngineSession)
    fake.run.side_effect = lambda func: asyncio.run(func(engine))
    return fake


@pytest.fixture
def mock_console():
    """Patch the console and progress spinner used by commands."""
    with patch.object(commands, "console") as console, patch.object(commands, "Progress"):
        yield console


def _printed(console):
    return "\n".join(str(c.args[0]) for c in console.print.call_args_list if c.args)


class TestApply:
    """Test apply_containers()."""

    def test_apply_all(self, session, engine, mock_console):
        """Test summary output for apply --all."""
        engine.reconcile.return_value = {"web": None, "db": "start: port is already allocated"}

        apply_containers(session, name=None, all_containers=True, quiet=False)

        output = _printed(mock_console)
        assert "Applied 1/2 containers" in output
        assert "db: start: port is already allocated" in output

    def test_apply_one(self, session, engine, mock_console):
        """Test output for a single container."""
        engine.apply_container.return_value = ContainerState(id="abcdef1234567890", running=True)

        apply_containers(session, name="web", all_containers=False)

        engine.apply_container.assert_awaited_once_with("web")
        assert "Container web applied (abcdef123456)" in _printed(mock_console)

    def test_apply_prints_captured_logs(self, session, engine, mock_console):
        """Test logs of attached containers are shown."""
        engine.apply_container.return_value = ContainerState(id="abc", container_logs="done\n")

        apply_containers(session, name="job", all_containers=False)

        assert "done\n" in _printed(mock_console)


class TestDestroy:
    """Test destroy_container()."""

    def test_destroy(self, session, engine, mock_console):
        """Test a managed container."""
        engine.destroy_container.return_value = True

        destroy_container(session, name="web")

        assert "Container web destroyed" in _printed(mock_console)

    def test_destroy_unmanaged(self, session, engine, mock_console):
        """Test an unmanaged container."""
        engine.destroy_container.return_value = False

        destroy_container(session, name="web")

        assert "not managed" in _printed(mock_console)


class TestStatusAndPlan:
    """Test show_status() and show_plan()."""

    def test_status_single(self, session, engine, mock_console):
        """Test status of one container."""
        engine.get_container_status.return_value = {
            "name": "web",
            "id": "abc",
            "exists": True,
            "running": True,
            "ensure": "present",
            "image": "nginx",
            "exit_code": None,
            "ip_address": "172.17.0.2",
            "ports": [{"internal": 80, "external": 8080, "ip": "0.0.0.0", "protocol": "tcp"}],
        }

        show_status(session, container="web")

        output = _printed(mock_console)
        assert "Running: Yes" in output
        assert "0.0.0.0:8080 -> 80/tcp" in output

    def test_status_missing(self, session, engine, mock_console):
        """Test status of an unknown container."""
        engine.get_container_status.return_value = None

        show_status(session, container="nope")

        assert "Container nope not found" in _printed(mock_console)

    def test_status_all(self, session, engine, mock_console):
        """Test the summary line."""
        engine.get_all_container_statuses.return_value = {
            "web": {"running": True, "ensure": "present", "id": "abc", "image": "nginx", "ip_address": None},
            "db": {"running": False, "ensure": "present", "id": None, "image": "postgres", "ip_address": None},
        }

        show_status(session)

        assert "1/2 running" in _printed(mock_console)

    def test_plan(self, session, engine, mock_console):
        """Test pending change count."""
        engine.plan.return_value = [
            {"name": "web", "action": "replace", "reasons": ["image"]},
            {"name": "db", "action": "refresh", "reasons": []},
        ]

        show_plan(session)

        assert "1 change(s) pending" in _printed(mock_console)


class TestValidate:
    """Test validate_config()."""

    def test_valid(self, mock_console):
        """Test a valid configuration."""
        session = Mock(spec=EngineSession)
        session.load_config.return_value = Mock(
            errors={}, containers={"web": ContainerSpec(name="web", image="nginx")}
        )

        assert validate_config(session) is True
        assert "Configuration is valid" in _printed(mock_console)

    def test_contradictory_volume(self, mock_console):
        """Test translation errors are reported."""
        session = Mock(spec=EngineSession)
        spec = ContainerSpec(name="web", image="nginx", volumes=[{"read_only": True}])
        session.load_config.return_value = Mock(errors={}, containers={"web": spec})

        assert validate_config(session) is False
        assert "without container path" in _printed(mock_console)

    def test_load_errors(self, mock_console):
        """Test per-container load errors are reported."""
        session = Mock(spec=EngineSession)
        session.load_config.return_value = Mock(errors={"broken": "invalid restart"}, containers={})

        assert validate_config(session) is False
        assert "broken: invalid restart" in _printed(mock_console)


class TestEngineSession:
    """Test EngineSession."""

    def test_config_dir_from_environment(self, monkeypatch):
        """Test BERTH_CONFIG_DIR is honoured."""
        monkeypatch.setenv("BERTH_CONFIG_DIR", "/srv/berth")

        assert str(EngineSession().config_dir) == "/srv/berth"
        assert str(EngineSession("/etc/berth").config_dir) == "/etc/berth"

    def test_run_wires_engine(self, tmp_path):
        """Test run loads config, state and closes the client."""
        (tmp_path / "config.yaml").write_text(f"agent:\n  state_dir: {tmp_path / 'state'}\n")

        with patch("berth.cli.commands.ProviderRegistry") as mock_registry:
            mock_registry.return_value.initialize = AsyncMock()
            mock_registry.return_value.close = AsyncMock()

            result = EngineSession(str(tmp_path)).run(AsyncMock(return_value="ok"))

        assert result == "ok"
        mock_registry.return_value.initialize.assert_awaited_once()
        mock_registry.return_value.close.assert_awaited_once()
