"""Tests for container models."""

import pytest
from pydantic import ValidationError

from berth.models.container import ContainerSpec, PortSpec, VolumeSpec, HealthcheckSpec
from berth.models.state import ContainerState


class TestContainerSpec:
    """Test ContainerSpec model."""

    def test_minimal_container_spec(self):
        """Test creating container spec with minimal fields."""
        spec = ContainerSpec(name="web", image="nginx:1.25")

        assert spec.name == "web"
        assert spec.image == "nginx:1.25"
        assert spec.ensure == "present"
        assert spec.start is True
        assert spec.must_run is True
        assert spec.attach is False
        assert spec.rm is False
        assert spec.restart == "no"
        assert spec.log_driver == "json-file"
        assert spec.ports == []
        assert spec.destroy_grace_seconds is None

    def test_full_container_spec(self):
        """Test creating container spec with nested fields."""
        spec = ContainerSpec(
            name="web",
            image="nginx",
            command=["nginx", "-g", "daemon off;"],
            ports=[{"internal": 80, "external": 8080}],
            volumes=[{"container_path": "/data", "host_path": "/srv/data", "read_only": True}],
            healthcheck={"test": ["CMD", "true"], "interval": "30s", "retries": 3},
            memory=512,
            memory_swap=-1,
            restart="on-failure",
            max_retry_count=5,
        )

        assert spec.ports[0] == PortSpec(internal=80, external=8080, ip="0.0.0.0", protocol="tcp")
        assert spec.volumes[0].read_only is True
        assert spec.healthcheck.interval == "30s"
        assert spec.healthcheck.timeout == "0s"
        assert spec.memory_swap == -1

    def test_empty_command_item_rejected(self):
        """Test that command entries may not be empty strings."""
        with pytest.raises(ValidationError) as exc_info:
            ContainerSpec(name="web", image="nginx", command=["echo", ""])

        assert "may not be empty" in str(exc_info.value)

    def test_set_like_lists_are_deduplicated(self):
        """Test that env and dns behave as sets."""
        spec = ContainerSpec(
            name="web",
            image="nginx",
            env=["A=1", "B=2", "A=1"],
            dns=["8.8.8.8", "8.8.8.8"],
        )

        assert spec.env == ["A=1", "B=2"]
        assert spec.dns == ["8.8.8.8"]

    def test_invalid_restart_policy(self):
        """Test restart policy validation."""
        with pytest.raises(ValidationError):
            ContainerSpec(name="web", image="nginx", restart="sometimes")

    def test_invalid_cpu_set(self):
        """Test cpu_set pattern validation."""
        ContainerSpec(name="web", image="nginx", cpu_set="0-2,4")
        with pytest.raises(ValidationError):
            ContainerSpec(name="web", image="nginx", cpu_set="zero")

    def test_memory_swap_lower_bound(self):
        """Test that swap accepts -1 but nothing below."""
        with pytest.raises(ValidationError):
            ContainerSpec(name="web", image="nginx", memory_swap=-2)

    def test_negative_grace_period_rejected(self):
        """Test destroy_grace_seconds must not be negative."""
        with pytest.raises(ValidationError):
            ContainerSpec(name="web", image="nginx", destroy_grace_seconds=-1)

    def test_mutable_fields_are_spec_fields(self):
        """Test that every mutable field exists on the model."""
        assert ContainerSpec.MUTABLE_FIELDS <= set(ContainerSpec.model_fields)
        assert "image" not in ContainerSpec.MUTABLE_FIELDS
        assert "ports" not in ContainerSpec.MUTABLE_FIELDS


class TestPortSpec:
    """Test PortSpec defaults."""

    def test_empty_ip_defaults(self):
        """Test that an empty IP becomes 0.0.0.0."""
        assert PortSpec(internal=80, ip="").ip == "0.0.0.0"
        assert PortSpec(internal=80, ip=None).ip == "0.0.0.0"

    def test_unknown_field_rejected(self):
        """Test that port entries reject unknown keys."""
        with pytest.raises(ValidationError):
            PortSpec(internal=80, host_port=8080)


class TestVolumeSpec:
    """Test VolumeSpec validation."""

    def test_relative_host_path_rejected(self):
        """Test host paths must be absolute."""
        with pytest.raises(ValidationError):
            VolumeSpec(container_path="/data", host_path="data")

    def test_neither_path_nor_container_loads(self):
        """Test that the exclusivity rule is left to the translator."""
        volume = VolumeSpec(read_only=True)
        assert volume.container_path is None
        assert volume.from_container is None


class TestHealthcheckSpec:
    """Test HealthcheckSpec validation."""

    def test_negative_retries_rejected(self):
        """Test retries must not be negative."""
        with pytest.raises(ValidationError):
            HealthcheckSpec(test=["CMD", "true"], retries=-1)


class TestContainerState:
    """Test ContainerState."""

    def test_exists_follows_id(self):
        """Test that existence is the presence of an id."""
        state = ContainerState()
        assert state.exists is False

        state.id = "abc123"
        assert state.exists is True
