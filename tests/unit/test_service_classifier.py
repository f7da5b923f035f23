import pytest
from dataclasses import replace
from d2k.ANALYZERS.service_classifier import ServiceClassifier
from d2k.ANALYZERS.rule_tables import ClassifierRules
from d2k.MODELS.orchestration_config import ComposeModel
from d2k.MODELS.service_definition import ServiceEntry, PortMapping, VolumeMount, MountType, Role


def service(**kwargs):
    kwargs.setdefault('name', 'svc')
    return ServiceEntry(**kwargs)


@pytest.mark.parametrize("image,role", [
    ("nginx:1.20", Role.WEB_APP),
    ("httpd:2.4", Role.WEB_APP),
    ("postgres:13", Role.DATABASE),
    ("mariadb:10", Role.DATABASE),
    ("redis:7", Role.CACHE),
    ("bitnami/kafka", Role.MESSAGE_QUEUE),
    ("haproxy:2.8", Role.LOAD_BALANCER),
    ("minio/minio", Role.STORAGE),
    ("busybox", Role.UNKNOWN),
])
def test_role_from_image(image, role):
    assert ServiceClassifier().role(service(image=image)) == role


def test_image_beats_other_signals():
    svc = service(image="postgres:13", ports=[PortMapping(container_port=80)],
                  environment={'REDIS_URL': 'redis://cache'})
    assert ServiceClassifier().role(svc) == Role.DATABASE


def test_first_image_entry_wins():
    # nginx is listed before redis in the image table
    assert ServiceClassifier().role(service(image="nginx-redis-bundle")) == Role.WEB_APP


def test_fallbacks_in_order():
    classifier = ServiceClassifier()
    assert classifier.role(service(image="myapp", ports=[PortMapping(container_port=8080)],
                                   environment={'DB_HOST': 'db'})) == Role.WEB_APP
    assert classifier.role(service(image="myapp", environment={'DATABASE_URL': 'x',
                                                                'REDIS_URL': 'y'})) == Role.DATABASE
    assert classifier.role(service(image="myapp", environment={'CACHE_TTL': '60'})) == Role.CACHE


def test_role_is_deterministic():
    svc = service(image="node:20", ports=[PortMapping(container_port=3000)])
    classifier = ServiceClassifier()
    assert {classifier.role(svc) for _ in range(5)} == {Role.UNKNOWN}


def test_custom_rules_are_injected():
    rules = replace(ClassifierRules(), image_roles=(("busybox", Role.WORKER),))
    classifier = ServiceClassifier(rules)
    assert classifier.role(service(image="busybox")) == Role.WORKER
    assert classifier.role(service(image="nginx")) == Role.UNKNOWN


def test_database_scaling_profile():
    svc = ServiceClassifier().classify_service(service(image="postgres:13"))
    assert svc.role == Role.DATABASE
    assert svc.scaling.stateful
    assert not svc.scaling.horizontal_scaling
    assert svc.scaling.vertical_scaling
    assert svc.scaling.session_affinity


def test_web_scaling_profile():
    svc = ServiceClassifier().classify_service(service(image="nginx"))
    assert svc.scaling.horizontal_scaling
    assert not svc.scaling.stateful
    assert not svc.scaling.vertical_scaling
    assert not svc.scaling.session_affinity


def test_named_volume_makes_service_stateful():
    mounted = service(image="nginx", volumes=[VolumeMount(source="content", target="/usr/share/nginx")])
    bound = service(image="nginx", volumes=[VolumeMount(source="./conf", target="/etc/nginx",
                                                          mount_type=MountType.BIND)])
    classifier = ServiceClassifier()
    assert classifier.classify_service(mounted).scaling.stateful
    assert not classifier.classify_service(mounted).scaling.horizontal_scaling
    assert not classifier.classify_service(bound).scaling.stateful


def test_session_keys_enable_affinity():
    svc = ServiceClassifier().classify_service(service(image="node", environment={'SESSION_SECRET': 's'}))
    assert svc.scaling.session_affinity


def test_cache_is_vertical():
    svc = ServiceClassifier().classify_service(service(image="redis"))
    assert svc.scaling.vertical_scaling
    assert svc.scaling.horizontal_scaling


def test_classify_returns_new_model():
    model = ComposeModel(services=[service(name='web', image='nginx'), service(name='db', image='postgres')])
    classified = ServiceClassifier().classify(model)

    assert [s.role for s in classified.services] == [Role.WEB_APP, Role.DATABASE]
    assert all(s.role == Role.UNKNOWN for s in model.services)
    for svc in classified.services:
        assert not (svc.scaling.stateful and svc.scaling.horizontal_scaling)
