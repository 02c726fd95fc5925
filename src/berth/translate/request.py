"""Translate a container spec into Docker Engine create-request shapes."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from berth.errors import SpecValidationError
from berth.models.container import (
    ContainerSpec,
    DeviceSpec,
    HealthcheckSpec,
    HostEntry,
    MountSpec,
    PortSpec,
    UlimitSpec,
    VolumeSpec,
)
from berth.translate.convert import (
    megabytes_to_bytes,
    parse_duration,
    string_map,
    swap_to_bytes,
)


logger = logging.getLogger(__name__)


@dataclass
class NetworkPlan:
    """Networks to connect after the container is created.

    ``attachments`` holds (network, EndpointConfig) pairs. When it is empty
    the container keeps the runtime's default network.
    """
    attachments: List[Tuple[str, Dict[str, Any]]] = field(default_factory=list)

    @property
    def replaces_default(self) -> bool:
        """Whether the default network should be disconnected first."""
        return bool(self.attachments)


@dataclass
class CreateRequest:
    """Everything needed to create a container."""
    name: str
    config: Dict[str, Any]
    host_config: Dict[str, Any]
    networking_config: Dict[str, Any]
    network_plan: NetworkPlan = field(default_factory=NetworkPlan)


def port_key(port: PortSpec) -> str:
    """Docker port key, e.g. "80/tcp"."""
    return f"{port.internal}/{port.protocol}"


def ports_to_docker(ports: List[PortSpec]) -> Tuple[Dict[str, dict], Dict[str, List[Dict[str, str]]]]:
    """Expand declared ports into ExposedPorts and PortBindings."""
    exposed: Dict[str, dict] = {}
    bindings: Dict[str, List[Dict[str, str]]] = {}

    for port in ports:
        key = port_key(port)
        exposed[key] = {}
        bindings.setdefault(key, []).append({
            "HostIp": port.ip or "0.0.0.0",
            "HostPort": str(port.external) if port.external is not None else "",
        })

    return exposed, bindings


def volumes_to_docker(volumes: List[VolumeSpec]) -> Tuple[Dict[str, dict], List[str], List[str]]:
    """Classify volume entries into (Volumes, Binds, VolumesFrom).

    Raises:
        SpecValidationError: an entry sets neither or both of
            container_path and from_container
    """
    volume_map: Dict[str, dict] = {}
    binds: List[str] = []
    volumes_from: List[str] = []

    for volume in volumes:
        from_container = volume.from_container or ""
        container_path = volume.container_path or ""
        source = volume.volume_name or volume.host_path or ""

        if not from_container and not container_path:
            raise SpecValidationError("Volume entry without container path or source container")
        if from_container and container_path:
            raise SpecValidationError("Both a container and a path specified in a volume entry")

        if from_container:
            volumes_from.append(from_container)
        elif source:
            mode = "ro" if volume.read_only else "rw"
            volume_map[container_path] = {}
            binds.append(f"{source}:{container_path}:{mode}")
        else:
            volume_map[container_path] = {}

    return volume_map, binds, volumes_from


def mount_to_docker(mount: MountSpec) -> Dict[str, Any]:
    """Build a Mount object; only the option block matching the type is used."""
    result: Dict[str, Any] = {
        "Type": mount.type,
        "Target": mount.target,
        "Source": mount.source or "",
        "ReadOnly": mount.read_only,
    }

    if mount.type == "bind" and mount.bind_options:
        bind_options: Dict[str, Any] = {}
        if mount.bind_options.propagation:
            bind_options["Propagation"] = mount.bind_options.propagation
        result["BindOptions"] = bind_options

    elif mount.type == "volume" and mount.volume_options:
        opts = mount.volume_options
        volume_options: Dict[str, Any] = {"NoCopy": opts.no_copy}
        if opts.labels:
            volume_options["Labels"] = string_map(opts.labels)
        if opts.driver_name or opts.driver_options:
            driver: Dict[str, Any] = {}
            if opts.driver_name:
                driver["Name"] = opts.driver_name
            if opts.driver_options:
                driver["Options"] = string_map(opts.driver_options)
            volume_options["DriverConfig"] = driver
        result["VolumeOptions"] = volume_options

    elif mount.type == "tmpfs" and mount.tmpfs_options:
        tmpfs_options: Dict[str, Any] = {}
        if mount.tmpfs_options.size_bytes is not None:
            tmpfs_options["SizeBytes"] = mount.tmpfs_options.size_bytes
        if mount.tmpfs_options.mode is not None:
            tmpfs_options["Mode"] = mount.tmpfs_options.mode
        result["TmpfsOptions"] = tmpfs_options

    return result


def device_to_docker(device: DeviceSpec) -> Dict[str, str]:
    """Build a DeviceMapping, defaulting the container path and permissions."""
    return {
        "PathOnHost": device.host_path,
        "PathInContainer": device.container_path or device.host_path,
        "CgroupPermissions": device.permissions or "rwm",
    }


def healthcheck_to_docker(healthcheck: HealthcheckSpec) -> Dict[str, Any]:
    """Build a HealthConfig with durations in nanoseconds."""
    return {
        "Test": list(healthcheck.test),
        "Interval": parse_duration(healthcheck.interval),
        "Timeout": parse_duration(healthcheck.timeout),
        "StartPeriod": parse_duration(healthcheck.start_period),
        "Retries": healthcheck.retries,
    }


def hosts_to_docker(hosts: List[HostEntry]) -> List[str]:
    """Render extra hosts as "host:ip"."""
    return [f"{entry.host}:{entry.ip}" for entry in hosts]


def ulimits_to_docker(ulimits: List[UlimitSpec]) -> List[Dict[str, Any]]:
    """Render ulimits."""
    return [{"Name": u.name, "Soft": u.soft, "Hard": u.hard} for u in ulimits]


def network_plan(spec: ContainerSpec) -> NetworkPlan:
    """Work out which networks to connect after creation.

    Advanced declarations take precedence over the simple network list.
    """
    plan = NetworkPlan()

    if spec.networks_advanced:
        for network in spec.networks_advanced:
            endpoint: Dict[str, Any] = {}
            if network.aliases:
                endpoint["Aliases"] = list(network.aliases)
            ipam: Dict[str, str] = {}
            if network.ipv4_address:
                ipam["IPv4Address"] = network.ipv4_address
            if network.ipv6_address:
                ipam["IPv6Address"] = network.ipv6_address
            endpoint["IPAMConfig"] = ipam
            plan.attachments.append((network.name, endpoint))

    elif spec.networks:
        for name in spec.networks:
            endpoint = {}
            if spec.network_alias:
                endpoint["Aliases"] = list(spec.network_alias)
            plan.attachments.append((name, endpoint))

    return plan


def build_config(spec: ContainerSpec) -> Dict[str, Any]:
    """Build the container Config body."""
    config: Dict[str, Any] = {"Image": spec.image}

    if spec.hostname:
        config["Hostname"] = spec.hostname
    if spec.domainname:
        config["Domainname"] = spec.domainname
    if spec.env:
        config["Env"] = list(spec.env)
    if spec.command:
        config["Cmd"] = list(spec.command)
    if spec.entrypoint:
        config["Entrypoint"] = list(spec.entrypoint)
    if spec.user:
        config["User"] = spec.user
    if spec.working_dir:
        config["WorkingDir"] = spec.working_dir
    if spec.labels:
        config["Labels"] = string_map(spec.labels)
    if spec.healthcheck:
        config["Healthcheck"] = healthcheck_to_docker(spec.healthcheck)

    exposed, _ = ports_to_docker(spec.ports)
    if exposed:
        config["ExposedPorts"] = exposed

    return config


def build_host_config(spec: ContainerSpec) -> Dict[str, Any]:
    """Build the HostConfig body."""
    host_config: Dict[str, Any] = {
        "Privileged": spec.privileged,
        "PublishAllPorts": spec.publish_all_ports,
        "RestartPolicy": {
            "Name": spec.restart,
            "MaximumRetryCount": spec.max_retry_count,
        },
        "Mounts": [mount_to_docker(m) for m in spec.mounts],
        "AutoRemove": spec.rm,
        "LogConfig": {"Type": spec.log_driver},
    }

    _, bindings = ports_to_docker(spec.ports)
    if bindings:
        host_config["PortBindings"] = bindings

    extra_hosts = hosts_to_docker(spec.hosts)
    if extra_hosts:
        host_config["ExtraHosts"] = extra_hosts

    _, binds, volumes_from = volumes_to_docker(spec.volumes)
    if binds:
        host_config["Binds"] = binds
    if volumes_from:
        host_config["VolumesFrom"] = volumes_from

    if spec.ulimits:
        host_config["Ulimits"] = ulimits_to_docker(spec.ulimits)
    if spec.tmpfs:
        host_config["Tmpfs"] = string_map(spec.tmpfs)
    if spec.capabilities:
        host_config["CapAdd"] = list(spec.capabilities.add)
        host_config["CapDrop"] = list(spec.capabilities.drop)
    if spec.devices:
        host_config["Devices"] = [device_to_docker(d) for d in spec.devices]

    if spec.dns:
        host_config["Dns"] = list(spec.dns)
    if spec.dns_opts:
        host_config["DnsOptions"] = list(spec.dns_opts)
    if spec.dns_search:
        host_config["DnsSearch"] = list(spec.dns_search)
    if spec.links:
        host_config["Links"] = list(spec.links)

    if spec.memory is not None:
        host_config["Memory"] = megabytes_to_bytes(spec.memory)
    if spec.memory_swap is not None:
        host_config["MemorySwap"] = swap_to_bytes(spec.memory_swap)
    if spec.cpu_shares is not None:
        host_config["CpuShares"] = spec.cpu_shares
    if spec.cpu_set:
        host_config["CpusetCpus"] = spec.cpu_set

    if spec.log_opts:
        host_config["LogConfig"]["Config"] = string_map(spec.log_opts)
    if spec.network_mode:
        host_config["NetworkMode"] = spec.network_mode
    if spec.userns_mode:
        host_config["UsernsMode"] = spec.userns_mode
    if spec.pid_mode:
        host_config["PidMode"] = spec.pid_mode
    if spec.ipc_mode:
        host_config["IpcMode"] = spec.ipc_mode
    if spec.sysctls:
        host_config["Sysctls"] = string_map(spec.sysctls)

    return host_config


def translate(spec: ContainerSpec) -> CreateRequest:
    """Translate a spec into a create request.

    Raises:
        SpecValidationError: the spec has contradictory fields
    """
    volume_map, _, _ = volumes_to_docker(spec.volumes)

    config = build_config(spec)
    if volume_map:
        config["Volumes"] = volume_map

    request = CreateRequest(
        name=spec.name,
        config=config,
        host_config=build_host_config(spec),
        networking_config={},
        network_plan=network_plan(spec),
    )
    logger.debug(f"Translated spec {spec.name}: {len(request.network_plan.attachments)} network(s) to attach")
    return request
