"""
Rule tables driving service classification and pattern detection.

Everything the classifier knows lives here: the ordered image → role table,
the fallback predicates, and the weighted signals and thresholds used for
pattern confidence. A ``ClassifierRules`` instance is built once and handed
to ``ServiceClassifier`` and ``PatternDetector``; tests can build their own.

The thresholds and fixed architectural confidences are tuned constants kept
for compatibility with earlier releases.
"""
from dataclasses import dataclass, field
from typing import Callable, Tuple, FrozenSet
from ..MODELS.service_definition import ServiceEntry, Role
from ..MODELS.detected_pattern import PatternType

Predicate = Callable[[ServiceEntry], bool]


@dataclass(frozen=True)
class RoleRule:
    """
    One step of the first-match-wins role chain.
    """
    description: str
    role: Role
    matches: Predicate


@dataclass(frozen=True)
class Signal:
    """
    A weighted piece of evidence for a pattern.
    """
    description: str
    weight: float
    matches: Predicate


@dataclass(frozen=True)
class PatternRule:
    """
    Signals and emission threshold for one per-service pattern kind.

    Only services already assigned ``role`` are scored. A pattern is emitted
    when the clamped sum of matched weights is strictly above ``threshold``.
    """
    pattern_type: PatternType
    role: Role
    threshold: float
    signals: Tuple[Signal, ...]


def image_contains(indicators: Tuple[str, ...]) -> Predicate:
    return lambda svc: any(i in svc.image for i in indicators)


def port_in(ports: FrozenSet[int]) -> Predicate:
    return lambda svc: any(p.container_port in ports for p in svc.ports)


def env_key_contains(markers: Tuple[str, ...]) -> Predicate:
    return lambda svc: any(m in key for key in svc.environment for m in markers)


def mount_target_contains(paths: Tuple[str, ...]) -> Predicate:
    return lambda svc: any(p in v.target for v in svc.volumes for p in paths)


def role_is(role: Role) -> Predicate:
    return lambda svc: svc.role == role


DEFAULT_IMAGE_ROLES: Tuple[Tuple[str, Role], ...] = (
    ("nginx", Role.WEB_APP),
    ("apache", Role.WEB_APP),
    ("httpd", Role.WEB_APP),
    ("postgres", Role.DATABASE),
    ("mysql", Role.DATABASE),
    ("mariadb", Role.DATABASE),
    ("mongodb", Role.DATABASE),
    ("redis", Role.CACHE),
    ("memcached", Role.CACHE),
    ("rabbitmq", Role.MESSAGE_QUEUE),
    ("kafka", Role.MESSAGE_QUEUE),
    ("traefik", Role.LOAD_BALANCER),
    ("haproxy", Role.LOAD_BALANCER),
    ("minio", Role.STORAGE),
)

WEB_PORTS = frozenset({80, 443, 8080})
HTTP_PORTS = frozenset({80, 443})

WEB_APP_INDICATORS = ("nginx", "apache", "httpd", "node", "python", "php", "ruby", "tomcat", "jetty")
DATABASE_INDICATORS = ("postgres", "mysql", "mariadb", "mongodb", "cassandra", "elasticsearch",
                       "neo4j", "couchdb")
CACHE_INDICATORS = ("redis", "memcached", "hazelcast", "varnish")
MESSAGE_QUEUE_INDICATORS = ("rabbitmq", "kafka", "activemq", "nats", "pulsar")
LOAD_BALANCER_INDICATORS = ("nginx", "haproxy", "traefik", "envoy")


def default_pattern_rules() -> Tuple[PatternRule, ...]:
    return (
        PatternRule(PatternType.WEB_APP, Role.WEB_APP, 0.7, (
            Signal("image is a web server or app runtime", 0.4, image_contains(WEB_APP_INDICATORS)),
            Signal("serves port 80, 443 or 8080", 0.3, port_in(WEB_PORTS)),
            Signal("environment configures PORT or HOST", 0.2, env_key_contains(("PORT", "HOST"))),
            Signal("classified as WebApp", 0.1, role_is(Role.WEB_APP)),
        )),
        PatternRule(PatternType.DATABASE, Role.DATABASE, 0.8, (
            Signal("image is a database engine", 0.5, image_contains(DATABASE_INDICATORS)),
            Signal("environment configures a database", 0.3,
                   env_key_contains(("DATABASE", "DB_", "POSTGRES", "MYSQL"))),
            Signal("mounts a data directory", 0.2, mount_target_contains(("/var/lib", "/data"))),
        )),
        PatternRule(PatternType.CACHE, Role.CACHE, 0.8, (
            Signal("image is a cache server", 0.6, image_contains(CACHE_INDICATORS)),
            Signal("environment configures a cache", 0.4, env_key_contains(("REDIS", "CACHE"))),
        )),
        PatternRule(PatternType.MESSAGE_QUEUE, Role.MESSAGE_QUEUE, 0.8, (
            Signal("image is a message broker", 0.6, image_contains(MESSAGE_QUEUE_INDICATORS)),
            Signal("environment configures a queue", 0.4,
                   env_key_contains(("QUEUE", "RABBITMQ", "KAFKA"))),
        )),
        PatternRule(PatternType.LOAD_BALANCER, Role.LOAD_BALANCER, 0.7, (
            Signal("image is a proxy or balancer", 0.5, image_contains(LOAD_BALANCER_INDICATORS)),
            Signal("serves port 80 or 443", 0.3, port_in(HTTP_PORTS)),
            Signal("environment configures upstreams", 0.2, env_key_contains(("UPSTREAM", "BACKEND"))),
        )),
    )


@dataclass(frozen=True)
class ArchitectureRules:
    """
    Conditions and fixed confidences for whole-application patterns.
    """
    three_tier_min_services: int = 3
    three_tier_confidence: float = 0.9
    microservices_min_services: int = 5
    microservices_min_roles: int = 3
    microservices_confidence: float = 0.8
    monolith_confidence: float = 0.85


@dataclass(frozen=True)
class ClassifierRules:
    """
    Immutable rule set shared by the classifier and the pattern detector.
    """
    image_roles: Tuple[Tuple[str, Role], ...] = DEFAULT_IMAGE_ROLES
    web_ports: FrozenSet[int] = WEB_PORTS
    database_env_markers: Tuple[str, ...] = ("DATABASE", "DB_")
    cache_env_markers: Tuple[str, ...] = ("REDIS", "CACHE")
    session_env_keys: Tuple[str, ...] = ("SESSION_STORE", "SESSION_SECRET")
    stateful_roles: FrozenSet[Role] = frozenset({Role.DATABASE, Role.STORAGE})
    vertical_roles: FrozenSet[Role] = frozenset({Role.DATABASE, Role.CACHE})
    pattern_rules: Tuple[PatternRule, ...] = field(default_factory=default_pattern_rules)
    architecture: ArchitectureRules = field(default_factory=ArchitectureRules)

    def role_rules(self) -> Tuple[RoleRule, ...]:
        """
        The ordered role chain: image table entries first, then port and
        environment fallbacks. The first matching rule decides the role.
        """
        rules = [
            RoleRule(f"image contains '{needle}'", role, image_contains((needle,)))
            for needle, role in self.image_roles
        ]
        rules.append(RoleRule("serves a web port", Role.WEB_APP, port_in(self.web_ports)))
        rules.append(RoleRule("database environment", Role.DATABASE,
                              env_key_contains(self.database_env_markers)))
        rules.append(RoleRule("cache environment", Role.CACHE,
                              env_key_contains(self.cache_env_markers)))
        return tuple(rules)

    def pattern_rule(self, pattern_type: PatternType) -> PatternRule:
        for rule in self.pattern_rules:
            if rule.pattern_type == pattern_type:
                return rule
        raise KeyError(pattern_type)


DEFAULT_RULES = ClassifierRules()
