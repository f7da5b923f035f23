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
Jinja2 templates for the Kubernetes objects generated by the converter.

Templates are rendered with ``trim_blocks`` and ``lstrip_blocks`` so block
tags can sit at column zero without leaving blank lines behind. Free-form
strings go through the ``quote`` filter.
"""

DEPLOYMENT_TEMPLATE = """\
apiVersion: apps/v1
kind: Deployment
metadata:
  name: {{ name }}
  namespace: {{ namespace }}
  labels:
    app: {{ name }}
    app.kubernetes.io/component: {{ role }}
spec:
  replicas: {{ replicas }}
  strategy:
    type: {{ strategy_type }}
  selector:
    matchLabels:
      app: {{ name }}
  template:
    metadata:
      labels:
        app: {{ name }}
    spec:
      containers:
      - name: {{ name }}
        image: {{ image | quote }}
{% if ports %}
        ports:
{% for port in ports %}
        - containerPort: {{ port.container_port }}
          protocol: {{ port.protocol }}
{% endfor %}
{% endif %}
{% if config_map %}
        envFrom:
        - configMapRef:
            name: {{ config_map }}
{% endif %}
{% for probe in probes %}
        {{ probe.kind }}:
{% if probe.command %}
          exec:
            command:
{% for arg in probe.command %}
            - {{ arg | quote }}
{% endfor %}
{% else %}
          httpGet:
            path: {{ probe.path }}
            port: {{ probe.port }}
{% endif %}
          initialDelaySeconds: {{ probe.initial_delay }}
          periodSeconds: {{ probe.period }}
{% if probe.timeout %}
          timeoutSeconds: {{ probe.timeout }}
{% endif %}
          failureThreshold: {{ probe.failure_threshold }}
{% endfor %}
{% if resources %}
        resources:
{% for section, values in resources %}
          {{ section }}:
{% for key, value in values %}
            {{ key }}: {{ value | quote }}
{% endfor %}
{% endfor %}
{% endif %}
{% if mounts %}
        volumeMounts:
{% for mount in mounts %}
        - name: {{ mount.name }}
          mountPath: {{ mount.path | quote }}
{% if mount.read_only %}
          readOnly: true
{% endif %}
{% endfor %}
{% endif %}
{% if volumes %}
      volumes:
{% for volume in volumes %}
      - name: {{ volume.name }}
{% if volume.claim %}
        persistentVolumeClaim:
          claimName: {{ volume.claim }}
{% elif volume.memory %}
        emptyDir:
          medium: Memory
{% else %}
        hostPath:
          path: {{ volume.path | quote }}
{% endif %}
{% endfor %}
{% endif %}
"""

SERVICE_TEMPLATE = """\
apiVersion: v1
kind: Service
metadata:
  name: {{ name }}
  namespace: {{ namespace }}
  labels:
    app: {{ name }}
spec:
  type: {{ service_type }}
  sessionAffinity: {{ session_affinity }}
  selector:
    app: {{ name }}
  ports:
{% for port in ports %}
  - name: {{ port.name }}
    port: {{ port.port }}
    targetPort: {{ port.target_port }}
    protocol: {{ port.protocol }}
{% endfor %}
"""

CONFIGMAP_TEMPLATE = """\
apiVersion: v1
kind: ConfigMap
metadata:
  name: {{ name }}
  namespace: {{ namespace }}
  labels:
    app: {{ app }}
data:
{% for key, value in environment %}
  {{ key | quote }}: {{ value | quote }}
{% endfor %}
"""

SECRET_TEMPLATE = """\
apiVersion: v1
kind: Secret
metadata:
  name: {{ name }}
  namespace: {{ namespace }}
  labels:
    app: {{ app }}
  annotations:
    d2k.io/placeholder: "true"
type: Opaque
data:
  username: {{ username }}
  password: {{ password }}
  database: {{ database }}
"""

PVC_TEMPLATE = """\
apiVersion: v1
kind: PersistentVolumeClaim
metadata:
  name: {{ name }}
  namespace: {{ namespace }}
  labels:
    app: {{ app }}
spec:
  accessModes:
    - {{ access_mode }}
  storageClassName: {{ storage_class }}
  resources:
    requests:
      storage: {{ size }}
"""

INGRESS_TEMPLATE = """\
apiVersion: networking.k8s.io/v1
kind: Ingress
metadata:
  name: {{ name }}
  namespace: {{ namespace }}
  annotations:
    kubernetes.io/ingress.class: nginx
    cert-manager.io/cluster-issuer: letsencrypt-prod
spec:
  tls:
  - hosts:
    - {{ host }}
    secretName: {{ app }}-tls
  rules:
  - host: {{ host }}
    http:
      paths:
      - path: /
        pathType: Prefix
        backend:
          service:
            name: {{ service_name }}
            port:
              number: {{ service_port }}
"""

HPA_TEMPLATE = """\
apiVersion: autoscaling/v2
kind: HorizontalPodAutoscaler
metadata:
  name: {{ name }}
  namespace: {{ namespace }}
spec:
  scaleTargetRef:
    apiVersion: apps/v1
    kind: Deployment
    name: {{ deployment }}
  minReplicas: {{ min_replicas }}
  maxReplicas: {{ max_replicas }}
  metrics:
  - type: Resource
    resource:
      name: cpu
      target:
        type: Utilization
        averageUtilization: {{ target_cpu }}
  - type: Resource
    resource:
      name: memory
      target:
        type: Utilization
        averageUtilization: {{ target_memory }}
"""

NETWORK_POLICY_TEMPLATE = """\
apiVersion: networking.k8s.io/v1
kind: NetworkPolicy
metadata:
  name: {{ name }}
  namespace: {{ namespace }}
spec:
  podSelector:
    matchLabels:
      app: {{ app }}
  policyTypes:
  - Ingress
  ingress:
  - from:
{% if clients %}
    - podSelector:
        matchExpressions:
        - key: app
          operator: In
          values:
{% for client in clients %}
          - {{ client }}
{% endfor %}
{% else %}
    - namespaceSelector:
        matchLabels:
          kubernetes.io/metadata.name: {{ namespace }}
{% endif %}
"""

SERVICE_MONITOR_TEMPLATE = """\
apiVersion: monitoring.coreos.com/v1
kind: ServiceMonitor
metadata:
  name: {{ name }}
  namespace: {{ namespace }}
spec:
  selector:
    matchLabels:
      app: {{ app }}
  endpoints:
  - port: {{ port }}
    path: {{ path }}
    interval: 30s
"""

TEMPLATES = {
    "deployment": DEPLOYMENT_TEMPLATE,
    "service": SERVICE_TEMPLATE,
    "configmap": CONFIGMAP_TEMPLATE,
    "secret": SECRET_TEMPLATE,
    "pvc": PVC_TEMPLATE,
    "ingress": INGRESS_TEMPLATE,
    "hpa": HPA_TEMPLATE,
    "network_policy": NETWORK_POLICY_TEMPLATE,
    "service_monitor": SERVICE_MONITOR_TEMPLATE,
}
