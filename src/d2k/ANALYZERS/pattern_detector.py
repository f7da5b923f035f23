# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Detection of per-service and whole-application deployment patterns.

Per-service confidence is the sum of the weights of the matched signals,
clamped to [0, 1]. Architectural patterns are checked independently of each
other and of the per-service ones, so several may fire for the same model.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Callable, Dict, Tuple
from ..MODELS.orchestration_config import ComposeModel
from ..MODELS.service_definition import ServiceEntry, Role
from ..MODELS.detected_pattern import (
    DetectedPattern, PatternType, WebAppPattern, DatabasePattern, CachePattern,
    MessageQueuePattern, LoadBalancerPattern, ResourceSpec,
)
from .rule_tables import ClassifierRules, PatternRule, DEFAULT_RULES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfidenceScore:
    """
    A confidence value together with the signals that produced it.
    """
    value: float
    matched: Tuple[str, ...]


class PatternDetector:
    """
    Detects deployment patterns in a classified model.
    """
    def __init__(self, rules: Optional[ClassifierRules] = None):
        """
        :param rules: Rule tables to score with. Defaults to the built-in set.
        """
        self.rules = rules or DEFAULT_RULES
        self._builders: Dict[PatternType, Callable[[ServiceEntry, float], DetectedPattern]] = {
            PatternType.WEB_APP: self._web_app_pattern,
            PatternType.DATABASE: self._database_pattern,
            PatternType.CACHE: self._cache_pattern,
            PatternType.MESSAGE_QUEUE: self._message_queue_pattern,
            PatternType.LOAD_BALANCER: self._load_balancer_pattern,
        }

    def detect_patterns(self, model: ComposeModel) -> List[DetectedPattern]:
        """
        Detects every per-service pattern followed by the architectural ones.

        :param model: A model whose services have already been classified.
        :return: Detected patterns in rule order, then service order.
        """
        patterns = []
        for rule in self.rules.pattern_rules:
            patterns.extend(self._detect_service_patterns(model, rule))
        patterns.extend(self.detect_architectural_patterns(model))

        for p in patterns:
            logger.info("Detected %s pattern (%.2f) for %s",
                        p.pattern_type.value, p.confidence, ", ".join(p.services))
        return patterns

    def score(self, service: ServiceEntry, rule: PatternRule) -> ConfidenceScore:
        """
        Scores one service against one pattern rule.

        :param service: The service to score.
        :param rule: The pattern rule.
        :return: The clamped confidence and the descriptions of matched signals.
        """
        matched = tuple(s for s in rule.signals if s.matches(service))
        total = sum(s.weight for s in matched)
        value = round(min(max(total, 0.0), 1.0), 4)
        return ConfidenceScore(value=value, matched=tuple(s.description for s in matched))

    def confidence(self, service: ServiceEntry, pattern_type: PatternType) -> float:
        return self.score(service, self.rules.pattern_rule(pattern_type)).value

    def _detect_service_patterns(self, model: ComposeModel, rule: PatternRule) -> List[DetectedPattern]:
        patterns = []
        for service in model.services_with_role(rule.role):
            score = self.score(service, rule)
            if score.value > rule.threshold:
                patterns.append(self._builders[rule.pattern_type](service, score.value))
            else:
                logger.debug("Service '%s' scored %.2f for %s, below %.2f",
                             service.name, score.value, rule.pattern_type.value, rule.threshold)
        return patterns

    def detect_architectural_patterns(self, model: ComposeModel) -> List[DetectedPattern]:
        """
        Detects three-tier, microservices and monolith-with-database shapes.

        :param model: A classified model.
        :return: Zero or more architectural patterns covering every service.
        """
        arch = self.rules.architecture
        names = [s.name for s in model.services]
        patterns = []

        if self.has_three_tier_architecture(model):
            patterns.append(DetectedPattern.three_tier(
                names, arch.three_tier_confidence, WebAppPattern(),
                [
                    "Detected three-tier architecture (presentation, business, data)",
                    "Consider implementing proper network segmentation",
                    "Add load balancing for the presentation tier",
                    "Implement database clustering for high availability",
                ],
            ))

        if self.has_microservices_characteristics(model):
            patterns.append(DetectedPattern.microservices(
                names, arch.microservices_confidence,
                WebAppPattern(
                    max_replicas=5,
                    target_cpu_percentage=80,
                    resource_requests=ResourceSpec(cpu="50m", memory="64Mi"),
                    resource_limits=ResourceSpec(cpu="200m", memory="256Mi"),
                ),
                [
                    "Detected microservices architecture",
                    "Implement service discovery (e.g., Consul, Eureka)",
                    "Add distributed tracing (e.g., Jaeger, Zipkin)",
                    "Consider implementing circuit breakers",
                    "Add centralized logging and monitoring",
                ],
            ))

        if self.has_monolith_characteristics(model):
            patterns.append(DetectedPattern.monolith_with_database(
                names, arch.monolith_confidence,
                WebAppPattern(
                    max_replicas=8,
                    target_cpu_percentage=60,
                    resource_requests=ResourceSpec(cpu="200m", memory="256Mi"),
                    resource_limits=ResourceSpec(cpu="1", memory="1Gi"),
                ),
                [
                    "Detected monolithic architecture with database",
                    "Consider implementing horizontal scaling for the application",
                    "Add database backup and recovery procedures",
                    "Implement proper resource limits and monitoring",
                ],
            ))

        return patterns

    def has_three_tier_architecture(self, model: ComposeModel) -> bool:
        return (
            bool(model.services_with_role(Role.WEB_APP))
            and bool(model.services_with_role(Role.DATABASE))
            and len(model.services) >= self.rules.architecture.three_tier_min_services
        )

    def has_microservices_characteristics(self, model: ComposeModel) -> bool:
        arch = self.rules.architecture
        roles = {s.role for s in model.services}
        return (
            len(model.services) >= arch.microservices_min_services
            and len(roles) >= arch.microservices_min_roles
            and any(s.depends_on for s in model.services)
        )

    def has_monolith_characteristics(self, model: ComposeModel) -> bool:
        return (
            len(model.services_with_role(Role.WEB_APP)) == 1
            and bool(model.services_with_role(Role.DATABASE))
        )

    def _web_app_pattern(self, service: ServiceEntry, confidence: float) -> DetectedPattern:
        horizontal = service.scaling.horizontal_scaling
        payload = WebAppPattern(
            enable_autoscaling=horizontal,
            min_replicas=2 if horizontal else 1,
            max_replicas=10 if horizontal else 3,
            health_check_enabled=service.health_check is not None,
        )

        recommendations = []
        if service.health_check is None:
            recommendations.append("Add health check endpoints (/health, /ready)")
        if service.resource_limits.memory is None:
            recommendations.append("Define memory limits to prevent OOM kills")
        if horizontal:
            recommendations.append("Enable Horizontal Pod Autoscaler (HPA)")
        if 443 not in service.container_ports:
            recommendations.append("Consider enabling HTTPS/TLS")
        recommendations.append("Implement proper logging and monitoring")
        recommendations.append("Add ingress controller for external access")

        return DetectedPattern.web_app(service.name, confidence, payload, recommendations)

    def _database_pattern(self, service: ServiceEntry, confidence: float) -> DetectedPattern:
        payload = DatabasePattern(storage_size="20Gi" if "postgres" in service.image else "10Gi")

        recommendations = [
            "Enable persistent storage with appropriate storage class",
            "Implement database backup strategy",
            "Use Kubernetes secrets for database credentials",
            "Apply network policies to restrict database access",
        ]
        if service.resource_limits.memory is None:
            recommendations.append("Set appropriate memory limits for database workload")
        if "postgres" in service.image:
            recommendations.append("Consider using PostgreSQL operator for advanced features")
        elif "mysql" in service.image:
            recommendations.append("Consider using MySQL operator for clustering")
        recommendations.append("Enable database monitoring and alerting")

        return DetectedPattern.database(service.name, confidence, payload, recommendations)

    def _cache_pattern(self, service: ServiceEntry, confidence: float) -> DetectedPattern:
        recommendations = []
        if "redis" in service.image:
            recommendations.extend([
                "Configure Redis persistence if data durability is required",
                "Set appropriate eviction policy based on use case",
                "Consider Redis Cluster for high availability",
            ])
        recommendations.extend([
            "Set memory limits to prevent cache from consuming all memory",
            "Enable cache monitoring and metrics",
            "Consider implementing cache warming strategies",
        ])
        return DetectedPattern.cache(service.name, confidence, CachePattern(), recommendations)

    def _message_queue_pattern(self, service: ServiceEntry, confidence: float) -> DetectedPattern:
        return DetectedPattern.message_queue(service.name, confidence, MessageQueuePattern(), [
            "Enable message persistence for durability",
            "Configure dead letter queues for failed messages",
            "Set appropriate message TTL",
            "Implement proper queue monitoring",
            "Consider queue clustering for high availability",
        ])

    def _load_balancer_pattern(self, service: ServiceEntry, confidence: float) -> DetectedPattern:
        return DetectedPattern.load_balancer(service.name, confidence, LoadBalancerPattern(), [
            "Configure health checks for backend services",
            "Enable SSL termination at load balancer",
            "Implement rate limiting to prevent abuse",
            "Enable access logging for debugging",
            "Consider implementing circuit breaker pattern",
        ])
