"""Container specification models."""

from typing import ClassVar, Dict, FrozenSet, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class PortSpec(BaseModel):
    """Published port mapping."""
    internal: int = Field(..., description="Port inside the container")
    external: Optional[int] = Field(None, description="Host port, ephemeral when unset")
    ip: str = Field(default="0.0.0.0", description="Host IP to bind")
    protocol: str = Field(default="tcp")

    model_config = ConfigDict(extra="forbid")

    @field_validator("ip", mode="before")
    @classmethod
    def default_empty_ip(cls, v):
        """Empty IP assignments default to 0.0.0.0."""
        if v is None or v == "":
            return "0.0.0.0"
        return v


class HostEntry(BaseModel):
    """Extra /etc/hosts entry."""
    host: str
    ip: str


class UlimitSpec(BaseModel):
    """Resource limit for the container process."""
    name: str
    soft: int
    hard: int


class NetworkAttachment(BaseModel):
    """Advanced network declaration."""
    name: str = Field(..., description="Network name or ID")
    aliases: List[str] = Field(default_factory=list)
    ipv4_address: Optional[str] = None
    ipv6_address: Optional[str] = None


class VolumeSpec(BaseModel):
    """Volume declaration.

    Exactly one of container_path and from_container must be set; that
    rule is checked by the translator, not here, so that a spec can be
    loaded and reported on before it is applied.
    """
    from_container: Optional[str] = None
    container_path: Optional[str] = None
    host_path: Optional[str] = None
    volume_name: Optional[str] = None
    read_only: bool = False

    @field_validator("host_path")
    @classmethod
    def validate_host_path(cls, v):
        """Host paths must be absolute."""
        if v and not v.startswith("/"):
            raise ValueError(f"host_path must be an absolute path: {v}")
        return v


class BindOptions(BaseModel):
    """Options for bind mounts."""
    propagation: Optional[Literal["private", "rprivate", "shared", "rshared", "slave", "rslave"]] = None


class VolumeOptions(BaseModel):
    """Options for volume mounts."""
    no_copy: bool = False
    labels: Dict[str, str] = Field(default_factory=dict)
    driver_name: Optional[str] = None
    driver_options: Dict[str, str] = Field(default_factory=dict)


class TmpfsOptions(BaseModel):
    """Options for tmpfs mounts."""
    size_bytes: Optional[int] = None
    mode: Optional[int] = None


class MountSpec(BaseModel):
    """Mount declaration."""
    type: Literal["bind", "volume", "tmpfs"]
    target: str = Field(..., description="Container path")
    source: Optional[str] = Field(None, description="Volume name or host path")
    read_only: bool = False
    bind_options: Optional[BindOptions] = None
    volume_options: Optional[VolumeOptions] = None
    tmpfs_options: Optional[TmpfsOptions] = None


class DeviceSpec(BaseModel):
    """Host device exposed to the container."""
    host_path: str
    container_path: Optional[str] = None
    permissions: Optional[str] = None


class HealthcheckSpec(BaseModel):
    """Health check.

    Durations are kept as strings (e.g. "30s", "1m30s") and parsed when the
    create request is built.
    """
    test: List[str] = Field(..., description="Test command as list")
    interval: str = Field(default="0s")
    timeout: str = Field(default="0s")
    start_period: str = Field(default="0s")
    retries: int = Field(default=0, ge=0)


class CapabilitiesSpec(BaseModel):
    """Kernel capabilities to add or drop."""
    add: List[str] = Field(default_factory=list)
    drop: List[str] = Field(default_factory=list)


class UploadSpec(BaseModel):
    """File copied into the container before it starts."""
    content: str
    file: str = Field(..., description="Destination path inside the container")
    executable: bool = False


class ContainerSpec(BaseModel):
    """Desired state of a single Docker container.

    ``start: false`` needs ``must_run: false`` as well: a created but
    unstarted container is not running, so with ``must_run`` left on it is
    removed again right after creation and recreated on every pass.
    """

    # Fields that can change without replacing the container
    MUTABLE_FIELDS: ClassVar[FrozenSet[str]] = frozenset({
        "ensure",
        "rm",
        "start",
        "attach",
        "logs",
        "must_run",
        "destroy_grace_seconds",
    })

    name: str = Field(..., description="Container name")
    image: str = Field(..., description="Image reference")
    ensure: Literal["present", "absent"] = Field(default="present")

    hostname: Optional[str] = None
    domainname: Optional[str] = None
    command: Optional[List[str]] = None
    entrypoint: Optional[List[str]] = None
    user: Optional[str] = None
    working_dir: Optional[str] = None
    env: List[str] = Field(default_factory=list)

    rm: bool = Field(default=False, description="Runtime removes the container on stop")
    start: bool = Field(default=True)
    attach: bool = Field(default=False, description="Wait for the container to exit")
    logs: bool = Field(default=False, description="Capture logs while attached")
    must_run: bool = Field(default=True)
    destroy_grace_seconds: Optional[int] = Field(None, ge=0)

    memory: Optional[int] = Field(None, ge=0, description="Memory limit in MB")
    memory_swap: Optional[int] = Field(None, ge=-1, description="Swap limit in MB, -1 for unlimited")
    cpu_shares: Optional[int] = Field(None, ge=0)
    cpu_set: Optional[str] = Field(None, pattern=r"^\d+([,-]\d+)*$")

    ports: List[PortSpec] = Field(default_factory=list)
    publish_all_ports: bool = False
    hosts: List[HostEntry] = Field(default_factory=list)
    network_mode: Optional[str] = None
    dns: List[str] = Field(default_factory=list)
    dns_opts: List[str] = Field(default_factory=list)
    dns_search: List[str] = Field(default_factory=list)
    links: List[str] = Field(default_factory=list)
    networks: List[str] = Field(default_factory=list)
    network_alias: List[str] = Field(default_factory=list)
    networks_advanced: List[NetworkAttachment] = Field(default_factory=list)

    volumes: List[VolumeSpec] = Field(default_factory=list)
    mounts: List[MountSpec] = Field(default_factory=list)
    devices: List[DeviceSpec] = Field(default_factory=list)
    tmpfs: Dict[str, str] = Field(default_factory=dict)

    labels: Dict[str, str] = Field(default_factory=dict)
    healthcheck: Optional[HealthcheckSpec] = None
    capabilities: Optional[CapabilitiesSpec] = None
    uploads: List[UploadSpec] = Field(default_factory=list)
    ulimits: List[UlimitSpec] = Field(default_factory=list)

    privileged: bool = False
    restart: Literal["no", "on-failure", "always", "unless-stopped"] = Field(default="no")
    max_retry_count: int = Field(default=0, ge=0)
    log_driver: Literal["json-file", "syslog", "journald", "gelf", "fluentd", "awslogs"] = Field(
        default="json-file"
    )
    log_opts: Dict[str, str] = Field(default_factory=dict)
    userns_mode: Optional[str] = None
    pid_mode: Optional[str] = None
    ipc_mode: Optional[str] = None
    sysctls: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")

    @field_validator("command")
    @classmethod
    def validate_command(cls, v):
        """Command entries may not be empty."""
        if v is not None and any(item == "" for item in v):
            raise ValueError("values for command may not be empty")
        return v

    @field_validator("env", "dns", "dns_opts", "dns_search", "links", "networks", "network_alias")
    @classmethod
    def dedupe(cls, v):
        """These lists behave as sets; keep first occurrence order."""
        return list(dict.fromkeys(v))
