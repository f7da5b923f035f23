"""
Models for a single compose service: ports, mounts, limits, health checks,
and the role and scaling profile assigned by the classifier.
"""
from typing import List, Dict, Optional
from pydantic import BaseModel, Field, model_validator
from enum import Enum


class Role(str, Enum):
    """
    Runtime purpose of a service.
    """
    WEB_APP = "WebApp"
    DATABASE = "Database"
    CACHE = "Cache"
    MESSAGE_QUEUE = "MessageQueue"
    LOAD_BALANCER = "LoadBalancer"
    PROXY = "Proxy"
    WORKER = "Worker"
    CRON_JOB = "CronJob"
    STORAGE = "Storage"
    UNKNOWN = "Unknown"


class MountType(str, Enum):
    """
    How a mount source is backed, derived from the shape of the source path.
    """
    VOLUME = "Volume"
    BIND = "Bind"
    TMPFS = "Tmpfs"
    NAMED_PIPE = "NamedPipe"


class PortMapping(BaseModel):
    """
    A published or exposed container port.
    """
    host_port: Optional[int] = None
    container_port: int
    protocol: str = "TCP"
    exposed: bool = False


class VolumeMount(BaseModel):
    """
    Defines a mapping between a mount source and a path in the container.
    """
    source: str
    target: str
    mount_type: MountType = MountType.VOLUME
    read_only: bool = False


class ResourceLimits(BaseModel):
    """
    Resource limits as declared in the compose file, kept verbatim.
    """
    memory: Optional[str] = None
    cpu: Optional[str] = None
    cpu_shares: Optional[int] = None
    pids_limit: Optional[int] = None


class HealthCheck(BaseModel):
    """
    Defines a command to run to check the health of a service.
    """
    test: List[str] = []
    interval: Optional[str] = None
    timeout: Optional[str] = None
    retries: Optional[int] = None
    start_period: Optional[str] = None


class ScalingProfile(BaseModel):
    """
    Derived flags describing how a service can be replicated.

    A stateful service never scales horizontally.
    """
    horizontal_scaling: bool = False
    vertical_scaling: bool = False
    stateful: bool = False
    session_affinity: bool = False

    @model_validator(mode="after")
    def _stateful_excludes_horizontal(self):
        if self.stateful and self.horizontal_scaling:
            raise ValueError("a stateful service cannot scale horizontally")
        return self


class ServiceEntry(BaseModel):
    """
    The full definition of a single service, extracted from Docker Compose.
    """
    name: str
    image: str = "unknown"

    # Networking
    ports: List[PortMapping] = []
    networks: List[str] = []

    # Environment
    environment: Dict[str, str] = {}

    # Storage
    volumes: List[VolumeMount] = []

    # Lifecycle
    depends_on: List[str] = []
    restart_policy: str = "no"
    health_check: Optional[HealthCheck] = None

    # Resources
    resource_limits: ResourceLimits = Field(default_factory=ResourceLimits)

    # Classification
    role: Role = Role.UNKNOWN
    scaling: ScalingProfile = Field(default_factory=ScalingProfile)

    @property
    def container_ports(self) -> List[int]:
        return [p.container_port for p in self.ports]

    def has_volume_mount(self) -> bool:
        """
        Whether any mount is backed by a named volume.
        """
        return any(v.mount_type == MountType.VOLUME for v in self.volumes)
