"""Configuration models."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AgentConfig(BaseModel):
    """Agent configuration."""
    reconciliation_interval: int = Field(default=30, ge=5)
    log_level: str = Field(default="INFO")
    config_dir: str = Field(default="./configs")
    state_dir: str = Field(default="./state")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()


class DockerConfig(BaseModel):
    """Docker Engine connection settings."""
    host: str = Field(
        default="unix:///var/run/docker.sock",
        description="Docker daemon socket or TCP address",
    )
    api_timeout: float = Field(default=30.0, gt=0, description="Docker API call timeout (seconds)")
    default_network: str = Field(
        default="bridge",
        description="Network the runtime attaches new containers to",
    )


class ReconcileConfig(BaseModel):
    """Readiness polling after a container is created."""
    poll_attempts: int = Field(default=30, ge=1)
    poll_interval: float = Field(default=0.5, ge=0)


class BerthConfig(BaseModel):
    """Main configuration model."""
    agent: AgentConfig = Field(default_factory=AgentConfig)
    docker: DockerConfig = Field(default_factory=DockerConfig)
    reconcile: ReconcileConfig = Field(default_factory=ReconcileConfig)

    model_config = ConfigDict(extra="ignore")
