"""Tests for the create-request translator."""

import pytest

from berth.errors import SpecValidationError
from berth.models.container import ContainerSpec, DeviceSpec, MountSpec, VolumeSpec
from berth.translate.request import (
    device_to_docker,
    mount_to_docker,
    network_plan,
    ports_to_docker,
    translate,
    volumes_to_docker,
)


class TestTranslate:
    """Test translate()."""

    def test_minimal_spec(self):
        """Test that a minimal spec yields a plain request."""
        request = translate(ContainerSpec(name="web", image="nginx"))

        assert request.name == "web"
        assert request.config == {"Image": "nginx"}
        assert request.networking_config == {}
        assert request.host_config["AutoRemove"] is False
        assert request.host_config["RestartPolicy"] == {"Name": "no", "MaximumRetryCount": 0}
        assert request.host_config["LogConfig"] == {"Type": "json-file"}
        assert "Memory" not in request.host_config
        assert request.network_plan.replaces_default is False

    def test_memory_conversion(self):
        """Test that memory is converted from megabytes."""
        request = translate(ContainerSpec(name="web", image="nginx", memory=512, memory_swap=-1))

        assert request.host_config["Memory"] == 536870912
        assert request.host_config["MemorySwap"] == -1

    def test_memory_swap_conversion(self):
        """Test that a positive swap limit is converted."""
        request = translate(ContainerSpec(name="web", image="nginx", memory_swap=1024))

        assert request.host_config["MemorySwap"] == 1024 * 1024 * 1024

    def test_config_fields(self):
        """Test Config keys for process settings."""
        spec = ContainerSpec(
            name="web",
            image="nginx",
            hostname="web01",
            command=["nginx", "-g", "daemon off;"],
            entrypoint=["/docker-entrypoint.sh"],
            user="www-data",
            working_dir="/srv",
            env=["A=1"],
            labels={"tier": "frontend"},
        )
        config = translate(spec).config

        assert config["Hostname"] == "web01"
        assert config["Cmd"] == ["nginx", "-g", "daemon off;"]
        assert config["Entrypoint"] == ["/docker-entrypoint.sh"]
        assert config["User"] == "www-data"
        assert config["WorkingDir"] == "/srv"
        assert config["Env"] == ["A=1"]
        assert config["Labels"] == {"tier": "frontend"}

    def test_healthcheck_durations(self):
        """Test that healthcheck durations are converted to nanoseconds."""
        spec = ContainerSpec(
            name="web",
            image="nginx",
            healthcheck={"test": ["CMD", "curl", "-f", "http://localhost"], "interval": "30s",
                         "timeout": "1m30s", "retries": 3},
        )
        health = translate(spec).config["Healthcheck"]

        assert health["Interval"] == 30_000_000_000
        assert health["Timeout"] == 90_000_000_000
        assert health["StartPeriod"] == 0
        assert health["Retries"] == 3

    def test_host_config_fields(self):
        """Test HostConfig keys for runtime settings."""
        spec = ContainerSpec(
            name="web",
            image="nginx",
            privileged=True,
            hosts=[{"host": "db", "ip": "10.0.0.5"}],
            dns=["1.1.1.1"],
            capabilities={"add": ["NET_ADMIN"], "drop": ["ALL"]},
            ulimits=[{"name": "nofile", "soft": 1024, "hard": 2048}],
            log_opts={"max-size": "10m"},
            cpu_shares=512,
            cpu_set="0-1",
            sysctls={"net.core.somaxconn": "1024"},
            tmpfs={"/run": "rw,size=64m"},
        )
        host_config = translate(spec).host_config

        assert host_config["Privileged"] is True
        assert host_config["ExtraHosts"] == ["db:10.0.0.5"]
        assert host_config["Dns"] == ["1.1.1.1"]
        assert host_config["CapAdd"] == ["NET_ADMIN"]
        assert host_config["CapDrop"] == ["ALL"]
        assert host_config["Ulimits"] == [{"Name": "nofile", "Soft": 1024, "Hard": 2048}]
        assert host_config["LogConfig"] == {"Type": "json-file", "Config": {"max-size": "10m"}}
        assert host_config["CpuShares"] == 512
        assert host_config["CpusetCpus"] == "0-1"
        assert host_config["Sysctls"] == {"net.core.somaxconn": "1024"}
        assert host_config["Tmpfs"] == {"/run": "rw,size=64m"}

    def test_contradictory_volume_raises(self):
        """Test that validation errors surface from translate."""
        spec = ContainerSpec(name="web", image="nginx", volumes=[{"read_only": True}])

        with pytest.raises(SpecValidationError):
            translate(spec)


class TestPorts:
    """Test port expansion."""

    def test_bindings(self):
        """Test ExposedPorts and PortBindings."""
        spec = ContainerSpec(
            name="web",
            image="nginx",
            ports=[
                {"internal": 80, "external": 8080},
                {"internal": 53, "protocol": "udp", "ip": "127.0.0.1"},
            ],
        )
        exposed, bindings = ports_to_docker(spec.ports)

        assert exposed == {"80/tcp": {}, "53/udp": {}}
        assert bindings["80/tcp"] == [{"HostIp": "0.0.0.0", "HostPort": "8080"}]
        assert bindings["53/udp"] == [{"HostIp": "127.0.0.1", "HostPort": ""}]

    def test_same_internal_port_multiple_bindings(self):
        """Test that bindings for one port key accumulate."""
        spec = ContainerSpec(
            name="web",
            image="nginx",
            ports=[{"internal": 80, "external": 8080}, {"internal": 80, "external": 8081}],
        )
        _, bindings = ports_to_docker(spec.ports)

        assert [b["HostPort"] for b in bindings["80/tcp"]] == ["8080", "8081"]


class TestVolumes:
    """Test volume classification."""

    def test_classification(self):
        """Test binds, anonymous volumes and volumes-from."""
        volumes = [
            VolumeSpec(container_path="/data", host_path="/srv/data", read_only=True),
            VolumeSpec(container_path="/cache", volume_name="cache"),
            VolumeSpec(container_path="/scratch"),
            VolumeSpec(from_container="base"),
        ]
        volume_map, binds, volumes_from = volumes_to_docker(volumes)

        assert binds == ["/srv/data:/data:ro", "cache:/cache:rw"]
        assert volume_map == {"/data": {}, "/cache": {}, "/scratch": {}}
        assert volumes_from == ["base"]

    def test_neither_path_nor_container(self):
        """Test an entry with no target."""
        with pytest.raises(SpecValidationError) as exc_info:
            volumes_to_docker([VolumeSpec(read_only=True)])

        assert "without container path or source container" in str(exc_info.value)

    def test_both_path_and_container(self):
        """Test an entry with two targets."""
        with pytest.raises(SpecValidationError) as exc_info:
            volumes_to_docker([VolumeSpec(container_path="/data", from_container="base")])

        assert "Both a container and a path" in str(exc_info.value)


class TestDevices:
    """Test device mapping defaults."""

    def test_defaults(self):
        """Test container path and permissions defaults."""
        mapping = device_to_docker(DeviceSpec(host_path="/dev/sda"))

        assert mapping == {
            "PathOnHost": "/dev/sda",
            "PathInContainer": "/dev/sda",
            "CgroupPermissions": "rwm",
        }

    def test_explicit_values(self):
        """Test that explicit values are kept."""
        mapping = device_to_docker(DeviceSpec(host_path="/dev/sda", container_path="/dev/xvda", permissions="r"))

        assert mapping["PathInContainer"] == "/dev/xvda"
        assert mapping["CgroupPermissions"] == "r"


class TestMounts:
    """Test mount conversion."""

    def test_option_block_matches_type(self):
        """Test that only the option block of the mount type is used."""
        mount = MountSpec(
            type="volume",
            target="/data",
            source="data",
            volume_options={"no_copy": True, "labels": {"a": "b"}, "driver_name": "local"},
            tmpfs_options={"size_bytes": 1024},
        )
        result = mount_to_docker(mount)

        assert result["VolumeOptions"] == {
            "NoCopy": True,
            "Labels": {"a": "b"},
            "DriverConfig": {"Name": "local"},
        }
        assert "TmpfsOptions" not in result

    def test_tmpfs_mount(self):
        """Test tmpfs options."""
        result = mount_to_docker(MountSpec(type="tmpfs", target="/tmp", tmpfs_options={"size_bytes": 1024, "mode": 0o1777}))

        assert result["Source"] == ""
        assert result["TmpfsOptions"] == {"SizeBytes": 1024, "Mode": 0o1777}


class TestNetworkPlan:
    """Test post-create network attachment planning."""

    def test_advanced_networks_win(self):
        """Test advanced declarations take precedence."""
        spec = ContainerSpec(
            name="web",
            image="nginx",
            networks=["ignored"],
            networks_advanced=[{"name": "backend", "aliases": ["api"], "ipv4_address": "10.1.0.5"}],
        )
        plan = network_plan(spec)

        assert plan.replaces_default is True
        assert plan.attachments == [
            ("backend", {"Aliases": ["api"], "IPAMConfig": {"IPv4Address": "10.1.0.5"}}),
        ]

    def test_simple_networks_use_alias(self):
        """Test simple network list with aliases."""
        spec = ContainerSpec(name="web", image="nginx", networks=["a", "b"], network_alias=["web"])
        plan = network_plan(spec)

        assert plan.attachments == [("a", {"Aliases": ["web"]}), ("b", {"Aliases": ["web"]})]

    def test_no_networks_keeps_default(self):
        """Test that no declarations keep the default network."""
        assert network_plan(ContainerSpec(name="web", image="nginx")).attachments == []
