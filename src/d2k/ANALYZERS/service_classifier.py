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
Assigns each service a runtime role and a scaling profile.
"""
import logging
from typing import Optional
from ..MODELS.orchestration_config import ComposeModel
from ..MODELS.service_definition import ServiceEntry, Role, ScalingProfile
from .rule_tables import ClassifierRules, DEFAULT_RULES

logger = logging.getLogger(__name__)


class ServiceClassifier:
    """
    Classifies services with an ordered, first-match-wins rule chain.
    """
    def __init__(self, rules: Optional[ClassifierRules] = None):
        """
        :param rules: Rule tables to classify with. Defaults to the built-in set.
        """
        self.rules = rules or DEFAULT_RULES
        self._role_rules = self.rules.role_rules()

    def role(self, service: ServiceEntry) -> Role:
        """
        Returns the role of the first rule that matches, or ``Role.UNKNOWN``.

        :param service: The service to classify.
        :return: The assigned role.
        """
        for rule in self._role_rules:
            if rule.matches(service):
                logger.debug("Service '%s' is %s: %s", service.name, rule.role.value, rule.description)
                return rule.role
        return Role.UNKNOWN

    def scaling_profile(self, service: ServiceEntry, role: Role) -> ScalingProfile:
        """
        Derives scaling flags from the role, the mounts and the environment.

        :param service: The service being classified.
        :param role: The role assigned to it.
        :return: The scaling profile.
        """
        role_is_stateful = role in self.rules.stateful_roles
        stateful = role_is_stateful or service.has_volume_mount()
        return ScalingProfile(
            stateful=stateful,
            horizontal_scaling=not stateful and not role_is_stateful,
            vertical_scaling=role in self.rules.vertical_roles,
            session_affinity=(
                any(key in service.environment for key in self.rules.session_env_keys)
                or role == Role.DATABASE
            ),
        )

    def classify_service(self, service: ServiceEntry) -> ServiceEntry:
        """
        Returns a copy of the service annotated with role and scaling profile.
        """
        role = self.role(service)
        return service.model_copy(update={
            'role': role,
            'scaling': self.scaling_profile(service, role),
        })

    def classify(self, model: ComposeModel) -> ComposeModel:
        """
        Returns a copy of the model with every service classified.

        The input model is left untouched.

        :param model: The extracted model.
        :return: The annotated model.
        """
        return model.model_copy(update={
            'services': [self.classify_service(s) for s in model.services],
        })
