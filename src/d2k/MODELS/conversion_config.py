"""
Settings for a conversion run.
"""
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from ..exceptions import ConfigError


class ConversionConfig(BaseModel):
    """
    Options controlling manifest synthesis.

    Can be loaded from a YAML file whose top-level keys match the fields.
    """
    model_config = ConfigDict(extra="forbid")

    namespace: str = "default"
    production: bool = False
    ingress_host: str = "example.com"
    storage_class: str = "standard"
    max_workers: int = Field(default=1, ge=1)
    output_dir: str = "./k8s"
    host_path_root: Optional[str] = None

    @classmethod
    def from_file(cls, path: str) -> "ConversionConfig":
        """
        Loads settings from a YAML file.

        :param path: Path to the configuration file.
        :return: Parsed configuration.
        :raises ConfigError: If the file is not a mapping or holds invalid values.
        """
        with open(path, 'r') as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Cannot parse config file {path}: {e}")
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigError(f"Invalid config file {path}: {e}")
