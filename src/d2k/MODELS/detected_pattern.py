"""
Models for detected deployment patterns and the production settings each
pattern carries.

``ProductionPattern`` is a tagged union: every payload carries its own
``kind`` literal, and a ``DetectedPattern`` only validates when that kind is
the one its ``pattern_type`` expects. Patterns are built through the
per-kind factory classmethods on ``DetectedPattern``.
"""
from typing import Annotated, List, Optional, Union, Literal
from pydantic import BaseModel, Field, model_validator
from enum import Enum


class PatternType(str, Enum):
    """
    Recognized deployment patterns, per service or for the whole application.
    """
    WEB_APP = "WebApp"
    DATABASE = "Database"
    CACHE = "Cache"
    MESSAGE_QUEUE = "MessageQueue"
    LOAD_BALANCER = "LoadBalancer"
    MICROSERVICES = "MicroservicesStack"
    MONOLITH_WITH_DATABASE = "MonolithWithDatabase"
    THREE_TIER = "ThreeTierArchitecture"

    @property
    def is_architectural(self) -> bool:
        return self in ARCHITECTURAL_PATTERNS


ARCHITECTURAL_PATTERNS = frozenset({
    PatternType.MICROSERVICES,
    PatternType.MONOLITH_WITH_DATABASE,
    PatternType.THREE_TIER,
})


class ResourceSpec(BaseModel):
    cpu: str
    memory: str


class WebAppPattern(BaseModel):
    kind: Literal["WebApp"] = "WebApp"
    enable_autoscaling: bool = True
    enable_ingress: bool = True
    enable_monitoring: bool = True
    enable_ssl: bool = True
    min_replicas: int = 2
    max_replicas: int = 10
    target_cpu_percentage: int = 70
    health_check_enabled: bool = True
    readiness_probe_enabled: bool = True
    resource_requests: ResourceSpec = ResourceSpec(cpu="100m", memory="128Mi")
    resource_limits: ResourceSpec = ResourceSpec(cpu="500m", memory="512Mi")


class DatabasePattern(BaseModel):
    kind: Literal["Database"] = "Database"
    enable_persistence: bool = True
    enable_backup: bool = True
    enable_replication: bool = False
    storage_class: str = "fast-ssd"
    storage_size: str = "10Gi"
    enable_network_policy: bool = True
    enable_secrets: bool = True
    enable_monitoring: bool = True
    backup_schedule: str = "0 2 * * *"
    resource_requests: ResourceSpec = ResourceSpec(cpu="500m", memory="1Gi")
    resource_limits: ResourceSpec = ResourceSpec(cpu="2", memory="4Gi")


class CachePattern(BaseModel):
    kind: Literal["Cache"] = "Cache"
    enable_persistence: bool = False
    enable_clustering: bool = False
    memory_allocation: str = "512mb"
    eviction_policy: str = "allkeys-lru"
    enable_monitoring: bool = True
    resource_requests: ResourceSpec = ResourceSpec(cpu="100m", memory="256Mi")
    resource_limits: ResourceSpec = ResourceSpec(cpu="500m", memory="1Gi")


class MessageQueuePattern(BaseModel):
    kind: Literal["MessageQueue"] = "MessageQueue"
    enable_persistence: bool = True
    enable_clustering: bool = False
    enable_dead_letter_queue: bool = True
    queue_durability: bool = True
    message_ttl: Optional[str] = "24h"
    resource_requests: ResourceSpec = ResourceSpec(cpu="200m", memory="512Mi")
    resource_limits: ResourceSpec = ResourceSpec(cpu="1", memory="2Gi")


class LoadBalancerPattern(BaseModel):
    kind: Literal["LoadBalancer"] = "LoadBalancer"
    algorithm: str = "round_robin"
    health_check_enabled: bool = True
    ssl_termination: bool = True
    rate_limiting: bool = True
    enable_logging: bool = True


ProductionPattern = Annotated[
    Union[WebAppPattern, DatabasePattern, CachePattern, MessageQueuePattern, LoadBalancerPattern],
    Field(discriminator="kind"),
]

# pattern type -> payload kind it must carry
PAYLOAD_KIND = {
    PatternType.WEB_APP: "WebApp",
    PatternType.DATABASE: "Database",
    PatternType.CACHE: "Cache",
    PatternType.MESSAGE_QUEUE: "MessageQueue",
    PatternType.LOAD_BALANCER: "LoadBalancer",
    PatternType.THREE_TIER: "WebApp",
    PatternType.MICROSERVICES: "WebApp",
    PatternType.MONOLITH_WITH_DATABASE: "WebApp",
}


class DetectedPattern(BaseModel):
    """
    A classification result tying one or more services to a recognized
    deployment pattern with a confidence score and production defaults.
    """
    pattern_type: PatternType
    services: List[str]
    confidence: float = Field(ge=0.0, le=1.0)
    production_pattern: ProductionPattern
    recommendations: List[str] = []

    @model_validator(mode="after")
    def _payload_matches_type(self):
        expected = PAYLOAD_KIND[self.pattern_type]
        if self.production_pattern.kind != expected:
            raise ValueError(
                f"{self.pattern_type.value} pattern requires a {expected} payload, "
                f"got {self.production_pattern.kind}"
            )
        return self

    @classmethod
    def web_app(cls, service: str, confidence: float, payload: WebAppPattern,
                recommendations: List[str]) -> "DetectedPattern":
        return cls(pattern_type=PatternType.WEB_APP, services=[service], confidence=confidence,
                   production_pattern=payload, recommendations=recommendations)

    @classmethod
    def database(cls, service: str, confidence: float, payload: DatabasePattern,
                 recommendations: List[str]) -> "DetectedPattern":
        return cls(pattern_type=PatternType.DATABASE, services=[service], confidence=confidence,
                   production_pattern=payload, recommendations=recommendations)

    @classmethod
    def cache(cls, service: str, confidence: float, payload: CachePattern,
              recommendations: List[str]) -> "DetectedPattern":
        return cls(pattern_type=PatternType.CACHE, services=[service], confidence=confidence,
                   production_pattern=payload, recommendations=recommendations)

    @classmethod
    def message_queue(cls, service: str, confidence: float, payload: MessageQueuePattern,
                      recommendations: List[str]) -> "DetectedPattern":
        return cls(pattern_type=PatternType.MESSAGE_QUEUE, services=[service], confidence=confidence,
                   production_pattern=payload, recommendations=recommendations)

    @classmethod
    def load_balancer(cls, service: str, confidence: float, payload: LoadBalancerPattern,
                      recommendations: List[str]) -> "DetectedPattern":
        return cls(pattern_type=PatternType.LOAD_BALANCER, services=[service], confidence=confidence,
                   production_pattern=payload, recommendations=recommendations)

    @classmethod
    def three_tier(cls, services: List[str], confidence: float, payload: WebAppPattern,
                   recommendations: List[str]) -> "DetectedPattern":
        return cls(pattern_type=PatternType.THREE_TIER, services=services, confidence=confidence,
                   production_pattern=payload, recommendations=recommendations)

    @classmethod
    def microservices(cls, services: List[str], confidence: float, payload: WebAppPattern,
                      recommendations: List[str]) -> "DetectedPattern":
        return cls(pattern_type=PatternType.MICROSERVICES, services=services, confidence=confidence,
                   production_pattern=payload, recommendations=recommendations)

    @classmethod
    def monolith_with_database(cls, services: List[str], confidence: float, payload: WebAppPattern,
                               recommendations: List[str]) -> "DetectedPattern":
        return cls(pattern_type=PatternType.MONOLITH_WITH_DATABASE, services=services,
                   confidence=confidence, production_pattern=payload,
                   recommendations=recommendations)
