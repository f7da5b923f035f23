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
Converters for generating Kubernetes manifests from a classified compose model.
"""
import base64
import hashlib
import json
import logging
import os
import posixpath
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Tuple

import yaml
from jinja2 import Environment, StrictUndefined, TemplateError

from ..exceptions import RenderError
from ..MODELS.conversion_config import ConversionConfig
from ..MODELS.detected_pattern import DetectedPattern, PatternType
from ..MODELS.manifest import Manifest, ManifestKind, ManifestSet, RenderFailure
from ..MODELS.orchestration_config import ComposeModel
from ..MODELS.service_definition import MountType, Role, ServiceEntry
from ..UTILS.quantities import duration_seconds, k8s_name, memory_quantity
from .kubernetes_templates import TEMPLATES

logger = logging.getLogger(__name__)

PRODUCTION_REPLICAS = {Role.WEB_APP: 3, Role.WORKER: 2}
EXTERNAL_ROLES = (Role.WEB_APP, Role.LOAD_BALANCER)
PVC_SIZES = {Role.DATABASE: "10Gi", Role.STORAGE: "50Gi"}
DEFAULT_PVC_SIZE = "1Gi"
DEFAULT_REQUESTS = {"cpu": "100m", "memory": "128Mi"}
DEFAULT_LIMITS = {"cpu": "500m", "memory": "512Mi"}
DEFAULT_PROBE_PORT = 8080

HPA_MIN_REPLICAS = 2
HPA_MAX_REPLICAS = 10
HPA_TARGET_CPU = 70
HPA_TARGET_MEMORY = 80

PLACEHOLDER_USERNAME = "admin"
PLACEHOLDER_PASSWORD = "changeme"

MAX_NAME_LENGTH = 63

Rendered = Tuple[List[Manifest], List[RenderFailure]]
Claims = Dict[Tuple[str, str], str]


def _hashed(name: str, *parts: str) -> str:
    """
    Appends a short digest of ``parts`` to ``name``, trimming it to fit a label.

    Plain names never end in a hex digest, so a hashed name cannot clash
    with an unhashed one.
    """
    digest = hashlib.sha1("\0".join(parts).encode()).hexdigest()[:8]
    return f"{name[:MAX_NAME_LENGTH - len(digest) - 1].rstrip('-')}-{digest}"


def _b64(value: str) -> str:
    return base64.b64encode(value.encode()).decode()


class KubernetesConverter:
    """
    Converts a classified compose model into Kubernetes manifests.

    Every manifest renders on its own: a failure is recorded in the returned
    ``ManifestSet.failures`` and the remaining manifests are still produced.
    """

    def __init__(self, config: Optional[ConversionConfig] = None):
        """
        Initializes the Kubernetes converter.

        :param config: Conversion settings. Defaults to ``ConversionConfig()``.
        """
        self.config = config or ConversionConfig()
        self.env = Environment(undefined=StrictUndefined, trim_blocks=True, lstrip_blocks=True)
        self.env.filters['quote'] = json.dumps
        self.templates = {key: self.env.from_string(source) for key, source in TEMPLATES.items()}

    def convert(self, model: ComposeModel, production: bool = False,
                patterns: Optional[List[DetectedPattern]] = None) -> ManifestSet:
        """
        Generates manifests for every service in the model.

        Passing ``patterns`` switches to production mode and adds the extra
        objects each detected pattern calls for.

        :param model: A classified compose model.
        :param production: Render production replicas and resources.
        :param patterns: Detected patterns to enrich the output with.
        :return: The manifests in (kind, service, name) order, plus failures.
        """
        production = production or patterns is not None or self.config.production
        payloads = self._service_payloads(patterns or [])
        claims = self.claim_names(model)

        if self.config.max_workers > 1 and len(model.services) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
                results = list(pool.map(
                    lambda svc: self._convert_service(svc, production, payloads.get(svc.name), claims),
                    model.services,
                ))
        else:
            results = [self._convert_service(svc, production, payloads.get(svc.name), claims)
                       for svc in model.services]

        manifests: List[Manifest] = []
        failures: List[RenderFailure] = []
        for rendered, failed in results:
            manifests.extend(rendered)
            failures.extend(failed)

        for pattern in patterns or []:
            rendered, failed = self.apply_pattern(model, pattern)
            known = {(m.kind, m.name) for m in manifests}
            manifests.extend(m for m in rendered if (m.kind, m.name) not in known)
            failures.extend(failed)

        manifests.sort(key=Manifest.sort_key)
        failures.sort(key=lambda f: (f.service, f.name))
        for failure in failures:
            logger.warning("%s", failure.message)
        logger.info("Rendered %d of %d manifests", len(manifests), len(manifests) + len(failures))
        return ManifestSet(manifests=manifests, failures=failures)

    def save_manifests(self, manifest_set: ManifestSet, output_dir: str) -> str:
        """
        Writes one ``<name>.yaml`` file per manifest, overwriting existing files.

        :param manifest_set: The manifests to write.
        :param output_dir: The directory where manifest files will be created.
        :return: The path to the output directory.
        """
        os.makedirs(output_dir, exist_ok=True)

        for manifest in manifest_set.manifests:
            with open(os.path.join(output_dir, manifest.filename), "w") as f:
                f.write(manifest.content)

        logger.info("Wrote %d manifests to %s", len(manifest_set), output_dir)
        return output_dir

    def apply_pattern(self, model: ComposeModel, pattern: DetectedPattern) -> Rendered:
        """
        Renders the production objects one detected pattern calls for.

        Architectural patterns contribute nothing here; their services are
        already covered by the per-service patterns.
        """
        appliers = {
            PatternType.WEB_APP: self.apply_web_app_pattern,
            PatternType.DATABASE: self.apply_database_pattern,
            PatternType.CACHE: self.apply_cache_pattern,
            PatternType.MESSAGE_QUEUE: self.apply_message_queue_pattern,
            PatternType.LOAD_BALANCER: self.apply_load_balancer_pattern,
        }
        applier = appliers.get(pattern.pattern_type)
        if applier is None:
            return [], []

        batch = _Batch()
        for name in pattern.services:
            service = model.service(name)
            if service is None:
                logger.debug("Pattern %s names unknown service '%s'", pattern.pattern_type.value, name)
                continue
            applier(batch, model, service, pattern)
        return batch.manifests, batch.failures

    def apply_web_app_pattern(self, batch: "_Batch", model: ComposeModel,
                              service: ServiceEntry, pattern: DetectedPattern):
        name = k8s_name(service.name)
        ports = self._service_ports(service)
        self._render(batch, ManifestKind.HORIZONTAL_POD_AUTOSCALER, "hpa", f"{name}-hpa", service, {
            "deployment": name,
            "min_replicas": HPA_MIN_REPLICAS,
            "max_replicas": HPA_MAX_REPLICAS,
            "target_cpu": HPA_TARGET_CPU,
            "target_memory": HPA_TARGET_MEMORY,
        })
        self._render(batch, ManifestKind.INGRESS, "ingress", f"{name}-ingress", service, {
            "app": name,
            "host": self.config.ingress_host,
            "service_name": name,
            "service_port": ports[0]["port"] if ports else 80,
        }, {"host": self.config.ingress_host})
        self._render(batch, ManifestKind.SERVICE_MONITOR, "service_monitor", f"{name}-monitor", service, {
            "app": name,
            "port": ports[0]["name"] if ports else "metrics",
            "path": "/metrics",
        })

    def apply_database_pattern(self, batch: "_Batch", model: ComposeModel,
                               service: ServiceEntry, pattern: DetectedPattern):
        name = k8s_name(service.name)
        clients = sorted({k8s_name(s.name) for s in model.services if service.name in s.depends_on})
        self._render(batch, ManifestKind.NETWORK_POLICY, "network_policy", f"{name}-network-policy", service, {
            "app": name,
            "clients": clients,
        })
        # placeholder values, to be replaced before deploying
        self._render(batch, ManifestKind.SECRET, "secret", f"{name}-secret", service, {
            "app": name,
            "username": _b64(PLACEHOLDER_USERNAME),
            "password": _b64(PLACEHOLDER_PASSWORD),
            "database": _b64(service.name),
        })

    def apply_cache_pattern(self, batch: "_Batch", model: ComposeModel,
                            service: ServiceEntry, pattern: DetectedPattern):
        pass

    def apply_message_queue_pattern(self, batch: "_Batch", model: ComposeModel,
                                    service: ServiceEntry, pattern: DetectedPattern):
        pass

    def apply_load_balancer_pattern(self, batch: "_Batch", model: ComposeModel,
                                    service: ServiceEntry, pattern: DetectedPattern):
        pass

    def claim_names(self, model: ComposeModel) -> Claims:
        """
        Maps each (service, named-volume source) pair to its claim name.

        Claims are named ``<service>-<source>-pvc``. When two different pairs
        would share a name, or the name has to be cut to fit, the name gets
        a digest of the pair instead, so every pair owns a distinct claim.
        """
        bases = {}
        for svc in model.services:
            for v in svc.volumes:
                if v.mount_type == MountType.VOLUME:
                    bases[(svc.name, v.source)] = k8s_name(f"{svc.name}-{v.source}-pvc", max_length=253)

        counts = Counter(bases.values())
        names = {}
        for pair, base in bases.items():
            if counts[base] > 1 or len(base) > MAX_NAME_LENGTH:
                names[pair] = _hashed(base, *pair)
            else:
                names[pair] = base
        return names

    def _convert_service(self, service: ServiceEntry, production: bool, payload: Any,
                         all_claims: Claims) -> Rendered:
        batch = _Batch()
        name = k8s_name(service.name)
        claims = {source: claim for (owner, source), claim in all_claims.items() if owner == service.name}

        context = self._deployment_context(service, production, payload, claims)
        self._render(batch, ManifestKind.DEPLOYMENT, "deployment", f"{name}-deployment", service, context,
                     {"replicas": str(context["replicas"]), "strategy": context["strategy_type"]})

        ports = self._service_ports(service)
        if ports:
            service_type = "LoadBalancer" if service.role in EXTERNAL_ROLES else "ClusterIP"
            affinity = "ClientIP" if service.scaling.session_affinity else "None"
            self._render(batch, ManifestKind.SERVICE, "service", f"{name}-service", service, {
                "name": name,
                "service_type": service_type,
                "session_affinity": affinity,
                "ports": ports,
            }, {"type": service_type, "session_affinity": affinity})

        if service.environment:
            self._render(batch, ManifestKind.CONFIG_MAP, "configmap", f"{name}-config", service, {
                "app": name,
                "environment": list(service.environment.items()),
            })

        size = PVC_SIZES.get(service.role, DEFAULT_PVC_SIZE)
        access_mode = "ReadWriteOnce" if service.scaling.stateful else "ReadWriteMany"
        for claim in claims.values():
            self._render(batch, ManifestKind.PERSISTENT_VOLUME_CLAIM, "pvc", claim, service, {
                "app": name,
                "size": size,
                "access_mode": access_mode,
                "storage_class": self.config.storage_class,
            }, {"size": size, "access_mode": access_mode})

        return batch.manifests, batch.failures

    def _deployment_context(self, service: ServiceEntry, production: bool, payload: Any,
                            claims: Dict[str, str]) -> Dict[str, Any]:
        name = k8s_name(service.name)
        replicas = 1
        if production and service.scaling.horizontal_scaling:
            replicas = PRODUCTION_REPLICAS.get(service.role, 1)

        container_ports = []
        for p in service.ports:
            entry = {"container_port": p.container_port, "protocol": p.protocol}
            if entry not in container_ports:
                container_ports.append(entry)

        mounts, volumes = self._pod_volumes(service, claims)
        return {
            "name": name,
            "role": service.role.value,
            "replicas": replicas,
            "strategy_type": "Recreate" if service.scaling.stateful else "RollingUpdate",
            "image": service.image,
            "ports": container_ports,
            "config_map": f"{name}-config" if service.environment else None,
            "probes": self._probes(service),
            "resources": self._resources(service, production, payload),
            "mounts": mounts,
            "volumes": volumes,
        }

    def _pod_volumes(self, service: ServiceEntry, claims: Dict[str, str]):
        """
        Builds the container mounts and pod volumes. Volumes are keyed by what
        backs them; two different backings never share a volume name.
        """
        mounts = []
        volumes: Dict[Tuple[str, str], Dict[str, Any]] = {}
        taken = set()
        for v in service.volumes:
            if v.mount_type == MountType.VOLUME:
                key = ("claim", v.source)
                volume = {"name": claims[v.source], "claim": claims[v.source], "memory": False, "path": None}
            elif v.mount_type == MountType.TMPFS:
                key = ("tmpfs", v.target)
                volume = {"name": k8s_name(f"tmpfs-{v.target}"), "claim": None, "memory": True, "path": None}
            else:
                key = ("host", v.source)
                volume = {"name": k8s_name(f"host-{v.source}"), "claim": None, "memory": False,
                          "path": self._host_path(service, v.source)}

            if key not in volumes:
                if volume["name"] in taken:
                    volume["name"] = _hashed(volume["name"], *key)
                taken.add(volume["name"])
                volumes[key] = volume
            mounts.append({"name": volumes[key]["name"], "path": v.target, "read_only": v.read_only})
        return mounts, list(volumes.values())

    def _host_path(self, service: ServiceEntry, source: str) -> str:
        """
        Resolves a bind source for ``hostPath``, which must be absolute.

        Relative sources are joined onto ``host_path_root`` when one is set,
        otherwise they are kept as written and a warning is logged.
        """
        if posixpath.isabs(source):
            return source
        if self.config.host_path_root:
            return posixpath.normpath(posixpath.join(self.config.host_path_root, source))
        logger.warning("Service '%s': bind source '%s' is relative; hostPath needs an absolute path "
                       "(set host_path_root to resolve it)", service.name, source)
        return source

    def _service_ports(self, service: ServiceEntry) -> List[Dict[str, Any]]:
        ports = []
        seen = set()
        for p in service.ports:
            port = p.host_port or p.container_port
            if (port, p.protocol) in seen:
                continue
            seen.add((port, p.protocol))
            ports.append({
                "name": f"{p.protocol.lower()}-{port}",
                "port": port,
                "target_port": p.container_port,
                "protocol": p.protocol,
            })
        return ports

    def _probes(self, service: ServiceEntry) -> List[Dict[str, Any]]:
        check = service.health_check
        if check is None or check.test[:1] == ["NONE"]:
            return []

        if not check.test:
            command = None
        elif check.test[0] == "CMD":
            command = check.test[1:]
        elif check.test[0] == "CMD-SHELL":
            command = ["/bin/sh", "-c", " ".join(check.test[1:])]
        else:
            command = ["/bin/sh", "-c", " ".join(check.test)]

        port = service.ports[0].container_port if service.ports else DEFAULT_PROBE_PORT
        period = duration_seconds(check.interval) or 10
        timeout = duration_seconds(check.timeout)
        start = duration_seconds(check.start_period)
        probes = []
        for kind, path, delay in (("livenessProbe", "/health", 30), ("readinessProbe", "/ready", 5)):
            probes.append({
                "kind": kind,
                "command": command,
                "path": path,
                "port": port,
                "initial_delay": start if start is not None else delay,
                "period": period,
                "timeout": timeout,
                "failure_threshold": check.retries or 3,
            })
        return probes

    def _resources(self, service: ServiceEntry, production: bool, payload: Any) -> List[Tuple[str, List[Tuple[str, str]]]]:
        declared = {
            "cpu": service.resource_limits.cpu,
            "memory": memory_quantity(service.resource_limits.memory),
        }
        if not production:
            limits = [(k, v) for k, v in declared.items() if v]
            return [("limits", limits)] if limits else []

        pattern_requests = getattr(payload, "resource_requests", None)
        pattern_limits = getattr(payload, "resource_limits", None)
        requests, limits = [], []
        for key in ("cpu", "memory"):
            if declared[key]:
                requests.append((key, declared[key]))
                limits.append((key, declared[key]))
            else:
                requests.append((key, getattr(pattern_requests, key, None) or DEFAULT_REQUESTS[key]))
                limits.append((key, getattr(pattern_limits, key, None) or DEFAULT_LIMITS[key]))
        return [("requests", requests), ("limits", limits)]

    def _service_payloads(self, patterns: List[DetectedPattern]) -> Dict[str, Any]:
        """
        Picks the production payload of the per-service pattern for each service.
        """
        payloads = {}
        for pattern in patterns:
            if pattern.pattern_type.is_architectural:
                continue
            for name in pattern.services:
                payloads.setdefault(name, pattern.production_pattern)
        return payloads

    def _render(self, batch: "_Batch", kind: ManifestKind, template: str, name: str,
                service: ServiceEntry, context: Dict[str, Any], metadata: Optional[Dict[str, str]] = None):
        """
        Renders one manifest into the batch, or records why it failed.
        """
        try:
            content = self.templates[template].render({"name": name, "namespace": self.config.namespace, **context})
            document = yaml.safe_load(content)
            if not isinstance(document, dict) or document.get("kind") != kind.value:
                raise ValueError("rendered document is not a %s object" % kind.value)
        except (TemplateError, yaml.YAMLError, TypeError, ValueError) as e:
            error = RenderError(kind.value, name, str(e))
            batch.failures.append(RenderFailure(kind=kind, name=name, service=service.name, message=str(error)))
            return

        batch.manifests.append(Manifest(
            kind=kind,
            name=name,
            service=service.name,
            content=content,
            metadata=metadata or {},
        ))


class _Batch:
    """
    Manifests and failures collected while converting one service or pattern.
    """
    def __init__(self):
        self.manifests: List[Manifest] = []
        self.failures: List[RenderFailure] = []
