"""
Models for rendered Kubernetes manifests and the per-run manifest collection.
"""
from typing import List, Dict
from pydantic import BaseModel
from enum import Enum


class ManifestKind(str, Enum):
    """
    Kubernetes object kinds produced by the converter, in output order.
    """
    DEPLOYMENT = "Deployment"
    SERVICE = "Service"
    CONFIG_MAP = "ConfigMap"
    SECRET = "Secret"
    PERSISTENT_VOLUME_CLAIM = "PersistentVolumeClaim"
    INGRESS = "Ingress"
    HORIZONTAL_POD_AUTOSCALER = "HorizontalPodAutoscaler"
    NETWORK_POLICY = "NetworkPolicy"
    SERVICE_MONITOR = "ServiceMonitor"


KIND_ORDER = {kind: index for index, kind in enumerate(ManifestKind)}


class Manifest(BaseModel):
    """
    One rendered Kubernetes object.

    ``name`` is the file-name stem the manifest is written under; ``metadata``
    holds kind-specific details such as the Service type or the PVC size.
    """
    kind: ManifestKind
    name: str
    service: str
    content: str
    metadata: Dict[str, str] = {}

    @property
    def filename(self) -> str:
        return f"{self.name}.yaml"

    def sort_key(self):
        return (KIND_ORDER[self.kind], self.service, self.name)


class RenderFailure(BaseModel):
    """
    A manifest that could not be rendered, reported against its identity.
    """
    kind: ManifestKind
    name: str
    service: str
    message: str


class ManifestSet(BaseModel):
    """
    All manifests produced by one conversion, plus any per-manifest failures.

    Partial success is a normal outcome: ``failures`` lists what did not
    render while ``manifests`` keeps everything that did.
    """
    manifests: List[Manifest] = []
    failures: List[RenderFailure] = []

    def of_kind(self, kind: ManifestKind) -> List[Manifest]:
        return [m for m in self.manifests if m.kind == kind]

    def names(self) -> List[str]:
        return [m.name for m in self.manifests]

    @property
    def deployments(self) -> List[Manifest]:
        return self.of_kind(ManifestKind.DEPLOYMENT)

    @property
    def services(self) -> List[Manifest]:
        return self.of_kind(ManifestKind.SERVICE)

    @property
    def config_maps(self) -> List[Manifest]:
        return self.of_kind(ManifestKind.CONFIG_MAP)

    @property
    def secrets(self) -> List[Manifest]:
        return self.of_kind(ManifestKind.SECRET)

    @property
    def persistent_volume_claims(self) -> List[Manifest]:
        return self.of_kind(ManifestKind.PERSISTENT_VOLUME_CLAIM)

    @property
    def ingresses(self) -> List[Manifest]:
        return self.of_kind(ManifestKind.INGRESS)

    @property
    def horizontal_pod_autoscalers(self) -> List[Manifest]:
        return self.of_kind(ManifestKind.HORIZONTAL_POD_AUTOSCALER)

    @property
    def network_policies(self) -> List[Manifest]:
        return self.of_kind(ManifestKind.NETWORK_POLICY)

    @property
    def service_monitors(self) -> List[Manifest]:
        return self.of_kind(ManifestKind.SERVICE_MONITOR)

    @property
    def attempted(self) -> int:
        return len(self.manifests) + len(self.failures)

    @property
    def succeeded(self) -> int:
        return len(self.manifests)

    def __len__(self):
        return len(self.manifests)
