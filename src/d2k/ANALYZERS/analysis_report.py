"""
Complexity scoring and migration recommendations for a classified model.
"""
from typing import List
from pydantic import BaseModel
from ..MODELS.orchestration_config import ComposeModel
from ..MODELS.service_definition import Role

STATEFUL_ROLES = (Role.DATABASE, Role.STORAGE)
PROBED_ROLES = (Role.WEB_APP, Role.DATABASE)


class AnalysisReport(BaseModel):
    complexity_score: int
    recommendations: List[str]


def complexity_score(model: ComposeModel) -> int:
    """
    Rough effort estimate for migrating the stack.

    10 per service, 5 per volume, 3 per network, plus per service 2 per
    dependency, 1 per port, 1 per mount, 5 for a health check and 10 for a
    stateful role.
    """
    score = len(model.services) * 10 + len(model.volumes) * 5 + len(model.networks) * 3
    for svc in model.services:
        score += len(svc.depends_on) * 2 + len(svc.ports) + len(svc.volumes)
        if svc.health_check is not None:
            score += 5
        if svc.role in STATEFUL_ROLES:
            score += 10
    return score


def recommendations(model: ComposeModel) -> List[str]:
    result = []
    for svc in model.services:
        if svc.health_check is None and svc.role in PROBED_ROLES:
            result.append(f"Add health check for service '{svc.name}'")
        if svc.resource_limits.memory is None or svc.resource_limits.cpu is None:
            result.append(f"Define resource limits for service '{svc.name}'")
        if svc.role == Role.DATABASE and not svc.has_volume_mount():
            result.append(f"Database service '{svc.name}' should use persistent volumes")

    if len(model.services) > 10:
        result.append("Consider breaking down the application into smaller microservices")
    return result


def analyze(model: ComposeModel) -> AnalysisReport:
    return AnalysisReport(complexity_score=complexity_score(model), recommendations=recommendations(model))
