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
Parsers for Docker Compose YAML files.

Only the ``services`` section is mandatory. Every other field is read
defensively: a value of the wrong shape falls back to its default (image
``unknown``, empty collections, restart ``no``). Port and volume strings are
the exception; a string that breaks their grammar aborts extraction.
"""
import logging
import os
import yaml
from dotenv import dotenv_values
from pydantic import ValidationError
from typing import Dict, Any, List, Optional
from ..exceptions import StructuralError, FieldParseError
from ..MODELS.orchestration_config import (
    ComposeModel, VolumeEntry, NetworkEntry, IpamConfig, IpamSubnet, SecretEntry, ConfigEntry,
)
from ..MODELS.service_definition import (
    ServiceEntry, PortMapping, VolumeMount, MountType, ResourceLimits, HealthCheck,
)
from ..UTILS.string_interpolation import EnvironmentInterpolator

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "3.8"
DEFAULT_IMAGE = "unknown"
DEFAULT_RESTART = "no"
DEFAULT_EXPOSE_PORT = 8080
DEFAULT_PROTOCOL = "TCP"
PROTOCOLS = ("TCP", "UDP", "SCTP")

_MOUNT_TYPES = {
    "volume": MountType.VOLUME,
    "bind": MountType.BIND,
    "tmpfs": MountType.TMPFS,
    "npipe": MountType.NAMED_PIPE,
}


class ComposeParser:
    """
    Parser turning docker-compose documents into a ``ComposeModel``.
    """
    def __init__(self, context: Optional[Dict[str, str]] = None, interpolate: bool = True):
        """
        Initializes the parser with an optional environment context for interpolation.

        :param context: Variables for ``${VAR}`` interpolation. Defaults to ``os.environ``.
        :param interpolate: Set to False to parse the text verbatim.
        """
        self.context = dict(os.environ) if context is None else dict(context)
        self.interpolate = interpolate

    def parse(self, compose_path: str) -> ComposeModel:
        """
        Parses a compose file from a path.

        A ``.env`` file next to the compose file supplies interpolation
        defaults; variables from the parser context take precedence.

        :param compose_path: Path to the compose file.
        :return: Parsed model.
        """
        with open(compose_path, 'r') as f:
            content = f.read()

        env_path = os.path.join(os.path.dirname(os.path.abspath(compose_path)), '.env')
        context = None
        if os.path.isfile(env_path):
            logger.debug("Loading interpolation defaults from %s", env_path)
            context = {k: v for k, v in dotenv_values(env_path).items() if v is not None}
            context.update(self.context)
        return self.parse_from_string(content, context=context)

    def parse_from_string(self, content: str, context: Optional[Dict[str, str]] = None) -> ComposeModel:
        """
        Parses a compose file from a string.

        :param content: YAML content of the compose file.
        :param context: Overrides the parser's interpolation context.
        :return: Parsed model.
        :raises StructuralError: If the text is not YAML or lacks a services mapping.
        """
        if self.interpolate:
            content = EnvironmentInterpolator.interpolate(
                content, self.context if context is None else context)

        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise StructuralError(f"Compose file is not valid YAML: {e}")
        return self.parse_document(data)

    def parse_document(self, data: Any) -> ComposeModel:
        """
        Builds the model from an already-loaded compose document.

        :param data: The loaded YAML document.
        :return: Parsed model.
        :raises StructuralError: If the services section is missing or not a mapping.
        """
        if not isinstance(data, dict):
            raise StructuralError(
                "Compose document must be a mapping",
                suggestion="Check that the file is a docker-compose.yml with a top-level 'services' key.",
            )
        if 'services' not in data:
            raise StructuralError(
                "No services section found",
                suggestion="Add a top-level 'services:' mapping.",
            )
        services_section = data['services']
        if not isinstance(services_section, dict):
            raise StructuralError("Services section is not a mapping")

        services = [
            self._parse_service(str(name), spec)
            for name, spec in services_section.items()
        ]

        version = data.get('version')
        if version is None or isinstance(version, (dict, list)):
            version = DEFAULT_VERSION

        try:
            return ComposeModel(
                version=str(version),
                services=services,
                volumes=[self._parse_volume_entry(n, c) for n, c in self._mapping(data.get('volumes')).items()],
                networks=[self._parse_network_entry(n, c) for n, c in self._mapping(data.get('networks')).items()],
                secrets=[SecretEntry(name=str(n), **self._file_ref(c)) for n, c in self._mapping(data.get('secrets')).items()],
                configs=[ConfigEntry(name=str(n), **self._file_ref(c)) for n, c in self._mapping(data.get('configs')).items()],
            )
        except ValidationError as e:
            raise StructuralError(f"Compose document is inconsistent: {e}")

    def _parse_service(self, name: str, spec: Any) -> ServiceEntry:
        """
        Parses a single service definition from a compose file.

        :param name: The name of the service.
        :param spec: The service specification dictionary.
        :return: A ServiceEntry instance.
        """
        if not isinstance(spec, dict):
            logger.debug("Service '%s' has no body, using defaults", name)
            spec = {}

        image = spec.get('image')
        if not isinstance(image, str) or not image:
            logger.debug("Service '%s' has no image, defaulting to '%s'", name, DEFAULT_IMAGE)
            image = DEFAULT_IMAGE

        restart = spec.get('restart')
        if not isinstance(restart, str):
            restart = DEFAULT_RESTART

        return ServiceEntry(
            name=name,
            image=image,
            ports=self._parse_ports(name, spec),
            environment=self._parse_environment(spec.get('environment')),
            volumes=self._parse_volumes(name, spec),
            depends_on=self._names(spec.get('depends_on')),
            networks=self._names(spec.get('networks')),
            restart_policy=restart,
            resource_limits=self._parse_resource_limits(spec),
            health_check=self._parse_health_check(spec.get('healthcheck')),
        )

    def _parse_ports(self, service: str, spec: Dict[str, Any]) -> List[PortMapping]:
        ports = []
        for entry in self._sequence(spec.get('ports')):
            if isinstance(entry, bool):
                continue
            if isinstance(entry, int):
                ports.append(PortMapping(container_port=entry))
            elif isinstance(entry, str):
                ports.append(self.parse_port_string(entry, service=service))
            elif isinstance(entry, dict):
                target = self._to_int(entry.get('target'))
                if target is None:
                    logger.debug("Service '%s': skipping port without target: %r", service, entry)
                    continue
                ports.append(PortMapping(
                    host_port=self._to_int(entry.get('published')),
                    container_port=target,
                    protocol=self._protocol(service, entry.get('protocol')),
                ))

        for entry in self._sequence(spec.get('expose')):
            port = None
            if isinstance(entry, (str, int)) and not isinstance(entry, bool):
                port = self._to_int(str(entry).split('/')[0])
            if port is None:
                logger.debug("Service '%s': unparseable expose entry %r, using %d",
                             service, entry, DEFAULT_EXPOSE_PORT)
                port = DEFAULT_EXPOSE_PORT
            ports.append(PortMapping(container_port=port, exposed=True))

        return ports

    def parse_port_string(self, port_str: str, service: str = "") -> PortMapping:
        """
        Parses a ``[host:]container[/protocol]`` port string.

        :param port_str: The port string.
        :param service: Owning service name, used in error messages.
        :return: The port mapping.
        :raises FieldParseError: On more than two parts or a non-numeric container port.
        """
        spec, _, protocol = port_str.strip().partition('/')
        parts = spec.split(':')

        if len(parts) > 2:
            raise FieldParseError(service, "ports", port_str, "expected at most one ':'")

        container_port = self._to_int(parts[-1])
        if container_port is None:
            raise FieldParseError(service, "ports", port_str, "container port is not a number")

        host_port = self._to_int(parts[0]) if len(parts) == 2 else None
        return PortMapping(
            host_port=host_port,
            container_port=container_port,
            protocol=self._protocol(service, protocol),
        )

    def _parse_environment(self, env_spec: Any) -> Dict[str, str]:
        environment = {}
        if isinstance(env_spec, dict):
            for k, v in env_spec.items():
                environment[str(k)] = self._scalar(v)
        elif isinstance(env_spec, list):
            for e in env_spec:
                if isinstance(e, str) and '=' in e:
                    k, v = e.split('=', 1)
                    environment[k] = v
        return environment

    def _parse_volumes(self, service: str, spec: Dict[str, Any]) -> List[VolumeMount]:
        volumes = []
        for v in self._sequence(spec.get('volumes')):
            if isinstance(v, str):
                volumes.append(self.parse_volume_string(v, service=service))
            elif isinstance(v, dict) and v.get('target'):
                mount_type = _MOUNT_TYPES.get(str(v.get('type', '')).lower())
                source = str(v.get('source') or '')
                if mount_type is None:
                    mount_type = self.mount_type_for(source)
                volumes.append(VolumeMount(
                    source=source or mount_type.value.lower(),
                    target=str(v['target']),
                    mount_type=mount_type,
                    read_only=v.get('read_only') is True,
                ))

        tmpfs = spec.get('tmpfs')
        for target in ([tmpfs] if isinstance(tmpfs, str) else self._sequence(tmpfs)):
            if isinstance(target, str):
                volumes.append(VolumeMount(source="tmpfs", target=target.split(':')[0],
                                           mount_type=MountType.TMPFS))
        return volumes

    def parse_volume_string(self, volume_str: str, service: str = "") -> VolumeMount:
        """
        Parses a ``source:target[:options]`` volume string.

        :param volume_str: The volume string.
        :param service: Owning service name, used in error messages.
        :return: The volume mount.
        :raises FieldParseError: If there are fewer than two parts.
        """
        parts = volume_str.split(':')
        if len(parts) < 2:
            raise FieldParseError(service, "volumes", volume_str, "expected 'source:target'")

        source, target = parts[0], parts[1]
        read_only = len(parts) > 2 and 'ro' in parts[2].split(',')
        return VolumeMount(
            source=source,
            target=target,
            mount_type=self.mount_type_for(source),
            read_only=read_only,
        )

    @staticmethod
    def mount_type_for(source: str) -> MountType:
        """
        Derives the mount type from the shape of the source path.
        """
        if source.startswith('\\\\.\\pipe\\') or source.startswith('//./pipe/'):
            return MountType.NAMED_PIPE
        if source.startswith(('/', './', '../', '~')) or source in ('.', '..'):
            return MountType.BIND
        return MountType.VOLUME

    def _parse_resource_limits(self, spec: Dict[str, Any]) -> ResourceLimits:
        limits = {}
        deploy = spec.get('deploy')
        if isinstance(deploy, dict):
            resources = deploy.get('resources')
            if isinstance(resources, dict) and isinstance(resources.get('limits'), dict):
                section = resources['limits']
                limits['memory'] = self._optional_scalar(section.get('memory'))
                limits['cpu'] = self._optional_scalar(section.get('cpus'))

        return ResourceLimits(
            cpu_shares=self._to_int(spec.get('cpu_shares')),
            pids_limit=self._to_int(spec.get('pids_limit')),
            **limits,
        )

    def _parse_health_check(self, healthcheck: Any) -> Optional[HealthCheck]:
        if not isinstance(healthcheck, dict) or healthcheck.get('disable') is True:
            return None

        test = healthcheck.get('test')
        if isinstance(test, str):
            test = [test]
        elif isinstance(test, list):
            test = [str(t) for t in test if isinstance(t, (str, int, float)) and not isinstance(t, bool)]
        else:
            test = []

        return HealthCheck(
            test=test,
            interval=self._optional_scalar(healthcheck.get('interval')),
            timeout=self._optional_scalar(healthcheck.get('timeout')),
            retries=self._to_int(healthcheck.get('retries')),
            start_period=self._optional_scalar(healthcheck.get('start_period')),
        )

    def _parse_volume_entry(self, name: Any, config: Any) -> VolumeEntry:
        if not isinstance(config, dict):
            return VolumeEntry(name=str(name))
        return VolumeEntry(
            name=str(name),
            driver=self._optional_scalar(config.get('driver')) or "local",
            driver_opts=self._string_map(config.get('driver_opts')),
            external=bool(config.get('external')),
        )

    def _parse_network_entry(self, name: Any, config: Any) -> NetworkEntry:
        if not isinstance(config, dict):
            return NetworkEntry(name=str(name))

        ipam = None
        ipam_spec = config.get('ipam')
        if isinstance(ipam_spec, dict):
            subnets = []
            for item in self._sequence(ipam_spec.get('config')):
                if isinstance(item, dict) and isinstance(item.get('subnet'), str):
                    subnets.append(IpamSubnet(subnet=item['subnet'],
                                              gateway=self._optional_scalar(item.get('gateway'))))
            ipam = IpamConfig(driver=self._optional_scalar(ipam_spec.get('driver')) or "default",
                              config=subnets)

        return NetworkEntry(
            name=str(name),
            driver=self._optional_scalar(config.get('driver')) or "bridge",
            driver_opts=self._string_map(config.get('driver_opts')),
            external=bool(config.get('external')),
            ipam=ipam,
        )

    def _file_ref(self, config: Any) -> Dict[str, Any]:
        if not isinstance(config, dict):
            return {}
        return {
            'file': self._optional_scalar(config.get('file')),
            'external': bool(config.get('external')),
        }

    def _protocol(self, service: str, value: Any) -> str:
        if value is None or value == "":
            return DEFAULT_PROTOCOL
        protocol = str(value).upper()
        if protocol not in PROTOCOLS:
            logger.debug("Service '%s': unknown port protocol %r, using %s", service, value, DEFAULT_PROTOCOL)
            return DEFAULT_PROTOCOL
        return protocol

    def _names(self, val: Any) -> List[str]:
        """
        Distinct names, in first-seen order, from either a sequence or the keys of a mapping.
        """
        if isinstance(val, dict):
            return [str(k) for k in val.keys()]
        if isinstance(val, list):
            return list(dict.fromkeys(v for v in val if isinstance(v, str)))
        return []

    def _sequence(self, val: Any) -> List[Any]:
        return val if isinstance(val, list) else []

    def _mapping(self, val: Any) -> Dict[Any, Any]:
        return val if isinstance(val, dict) else {}

    def _string_map(self, val: Any) -> Dict[str, str]:
        return {str(k): self._scalar(v) for k, v in self._mapping(val).items()
                if not isinstance(v, (dict, list))}

    def _scalar(self, val: Any) -> str:
        if val is None:
            return ""
        if isinstance(val, bool):
            return "true" if val else "false"
        return str(val)

    def _optional_scalar(self, val: Any) -> Optional[str]:
        if val is None or isinstance(val, (dict, list)):
            return None
        return self._scalar(val)

    def _to_int(self, val: Any) -> Optional[int]:
        if isinstance(val, bool) or val is None:
            return None
        try:
            return int(str(val).strip())
        except ValueError:
            return None
