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
D2K - Docker to Kubernetes

Converts Docker Compose applications into Kubernetes manifests. Services are
extracted into a typed model, classified by runtime role and architectural
pattern with explainable confidence scores, and synthesized into Deployments,
Services, ConfigMaps, PersistentVolumeClaims and, in production mode,
pattern-driven extras such as autoscalers, ingresses and network policies.
"""

__version__ = "0.1.0"
__author__ = "Michael Maillet, Damien Davison, Sacha Davison"
__license__ = "Apache-2.0"
