"""
Models for a whole compose application and its top-level resources.
"""
from typing import List, Dict, Optional
from pydantic import BaseModel, model_validator
from .service_definition import ServiceEntry, Role
from ..UTILS.quantities import k8s_name


class VolumeEntry(BaseModel):
    """
    A top-level named volume.
    """
    name: str
    driver: str = "local"
    driver_opts: Dict[str, str] = {}
    external: bool = False


class IpamSubnet(BaseModel):
    subnet: str
    gateway: Optional[str] = None


class IpamConfig(BaseModel):
    driver: str = "default"
    config: List[IpamSubnet] = []


class NetworkEntry(BaseModel):
    """
    A top-level network, with optional IPAM subnet configuration.
    """
    name: str
    driver: str = "bridge"
    driver_opts: Dict[str, str] = {}
    external: bool = False
    ipam: Optional[IpamConfig] = None


class SecretEntry(BaseModel):
    """
    A top-level secret. ``usage_count`` is carried but never computed.
    """
    name: str
    file: Optional[str] = None
    external: bool = False
    usage_count: int = 0


class ConfigEntry(BaseModel):
    """
    A top-level config object. ``usage_count`` is carried but never computed.
    """
    name: str
    file: Optional[str] = None
    external: bool = False
    usage_count: int = 0


class ComposeModel(BaseModel):
    """
    Complete intermediate model of a multi-service stack.
    Equivalent to a parsed docker-compose.yml file.
    """
    version: str = "3.8"
    services: List[ServiceEntry] = []
    volumes: List[VolumeEntry] = []
    networks: List[NetworkEntry] = []
    secrets: List[SecretEntry] = []
    configs: List[ConfigEntry] = []

    @model_validator(mode="after")
    def _unique_service_names(self):
        seen = {}
        for svc in self.services:
            key = k8s_name(svc.name)
            if seen.get(key) == svc.name:
                raise ValueError(f"duplicate service name '{svc.name}'")
            if key in seen:
                raise ValueError(f"services '{seen[key]}' and '{svc.name}' "
                                 f"both map to the Kubernetes name '{key}'")
            seen[key] = svc.name
        return self

    def service(self, name: str) -> Optional[ServiceEntry]:
        """
        Looks up a service by name.
        """
        for svc in self.services:
            if svc.name == name:
                return svc
        return None

    def services_with_role(self, role: Role) -> List[ServiceEntry]:
        return [s for s in self.services if s.role == role]
