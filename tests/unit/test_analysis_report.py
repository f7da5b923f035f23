from d2k.ANALYZERS.analysis_report import analyze, complexity_score, recommendations
from d2k.ANALYZERS.service_classifier import ServiceClassifier
from d2k.MODELS.orchestration_config import ComposeModel, VolumeEntry, NetworkEntry
from d2k.MODELS.service_definition import (
    ServiceEntry, PortMapping, VolumeMount, HealthCheck, ResourceLimits, MountType,
)


def test_empty_model():
    report = analyze(ComposeModel())
    assert report.complexity_score == 0
    assert report.recommendations == []


def test_complexity_score():
    model = ServiceClassifier().classify(ComposeModel(
        services=[
            ServiceEntry(name='web', image='nginx', ports=[PortMapping(container_port=80)],
                         depends_on=['db'], health_check=HealthCheck(test=['CMD', 'true'])),
            ServiceEntry(name='db', image='postgres',
                         volumes=[VolumeMount(source='data', target='/var/lib/postgresql/data')]),
        ],
        volumes=[VolumeEntry(name='data')],
        networks=[NetworkEntry(name='back')],
    ))
    # services 20, volume 5, network 3, web: 2 + 1 + 5, db: 1 + 10
    assert complexity_score(model) == 47


def test_recommendations():
    model = ServiceClassifier().classify(ComposeModel(services=[
        ServiceEntry(name='web', image='nginx'),
        ServiceEntry(name='db', image='postgres', resource_limits=ResourceLimits(memory='1g', cpu='1'),
                     volumes=[VolumeMount(source='./pg', target='/var/lib/postgresql/data',
                                          mount_type=MountType.BIND)]),
    ]))
    assert recommendations(model) == [
        "Add health check for service 'web'",
        "Define resource limits for service 'web'",
        "Add health check for service 'db'",
        "Database service 'db' should use persistent volumes",
    ]


def test_large_stack_recommends_splitting():
    model = ComposeModel(services=[
        ServiceEntry(name=f's{i}', resource_limits=ResourceLimits(memory='64m', cpu='0.1'))
        for i in range(11)
    ])
    assert recommendations(model) == ["Consider breaking down the application into smaller microservices"]
