import pytest
import yaml
from d2k.PARSERS.compose_parser import ComposeParser
from d2k.MODELS.service_definition import MountType
from d2k.exceptions import StructuralError, FieldParseError, D2KError


def test_parse(tmp_path):
    compose_content = {
        'version': '3.8',
        'services': {
            'web': {
                'image': 'nginx:latest',
                'ports': ['80:80'],
                'environment': {
                    'DEBUG': 'true'
                },
                'restart': 'always'
            },
            'db': {
                'image': 'postgres:13',
                'volumes': ['db_data:/var/lib/postgresql/data']
            }
        },
        'volumes': {
            'db_data': {}
        }
    }

    compose_file = tmp_path / "docker-compose.yml"
    with open(compose_file, 'w') as f:
        yaml.dump(compose_content, f)

    parser = ComposeParser(context={})
    model = parser.parse(str(compose_file))

    assert [s.name for s in model.services] == ['web', 'db']
    web = model.service('web')
    assert web.image == 'nginx:latest'
    assert web.ports[0].host_port == 80
    assert web.ports[0].container_port == 80
    assert web.environment['DEBUG'] == 'true'
    assert web.restart_policy == 'always'

    assert [v.name for v in model.volumes] == ['db_data']
    db = model.service('db')
    assert db.volumes[0].source == 'db_data'
    assert db.volumes[0].target == '/var/lib/postgresql/data'
    assert db.volumes[0].mount_type == MountType.VOLUME


def test_service_order_is_preserved():
    content = """
services:
  zeta: {image: a}
  alpha: {image: b}
  mid: {image: c}
"""
    model = ComposeParser(context={}).parse_from_string(content)
    assert [s.name for s in model.services] == ['zeta', 'alpha', 'mid']


def test_defaults_for_sparse_service():
    model = ComposeParser(context={}).parse_from_string("services:\n  worker:\n")
    svc = model.service('worker')
    assert svc.image == 'unknown'
    assert svc.ports == []
    assert svc.environment == {}
    assert svc.restart_policy == 'no'
    assert svc.health_check is None
    assert model.version == '3.8'


def test_wrong_shapes_fall_back_to_defaults():
    content = """
services:
  app:
    image: [not, a, string]
    environment: 42
    depends_on: {db: {condition: service_healthy}}
    restart: {bad: true}
    healthcheck: nope
"""
    svc = ComposeParser(context={}).parse_from_string(content).service('app')
    assert svc.image == 'unknown'
    assert svc.environment == {}
    assert svc.depends_on == ['db']
    assert svc.restart_policy == 'no'
    assert svc.health_check is None


@pytest.mark.parametrize("content", [
    "just a string",
    "- a\n- list",
    "version: '3'\n",
    "services: [web, db]\n",
    "services: {web: {image: nginx}\n",
])
def test_structural_errors(content):
    with pytest.raises(StructuralError):
        ComposeParser(context={}).parse_from_string(content)


def test_port_string_forms():
    parser = ComposeParser(context={})
    assert parser.parse_port_string("8080:80").host_port == 8080
    assert parser.parse_port_string("8080:80").container_port == 80

    single = parser.parse_port_string("3000")
    assert single.host_port is None
    assert single.container_port == 3000

    udp = parser.parse_port_string("53:53/udp")
    assert udp.protocol == 'UDP'
    assert parser.parse_port_string("80").protocol == 'TCP'


def test_unknown_protocol_falls_back_to_tcp():
    parser = ComposeParser(context={})
    assert parser.parse_port_string("80/xyz").protocol == 'TCP'
    assert parser.parse_port_string("5000/sctp").protocol == 'SCTP'

    content = """
services:
  web:
    image: nginx
    ports:
      - target: 80
        protocol: quic
      - target: 81
        protocol: 7
"""
    ports = parser.parse_from_string(content).service('web').ports
    assert [p.protocol for p in ports] == ['TCP', 'TCP']


def test_dependencies_and_networks_are_distinct():
    content = """
services:
  web:
    image: nginx
    depends_on: [db, cache, db]
    networks: [front, back, front]
  db:
    image: postgres
  cache:
    image: redis
"""
    web = ComposeParser(context={}).parse_from_string(content).service('web')
    assert web.depends_on == ['db', 'cache']
    assert web.networks == ['front', 'back']


def test_service_names_colliding_in_kubernetes_are_rejected():
    content = "services:\n  web_app:\n    image: nginx\n  web-app:\n    image: nginx\n"
    with pytest.raises(StructuralError) as exc:
        ComposeParser(context={}).parse_from_string(content)
    assert "web_app" in str(exc.value)
    assert "web-app" in str(exc.value)


def test_port_string_non_numeric_host_port_is_dropped():
    mapping = ComposeParser(context={}).parse_port_string("abc:80")
    assert mapping.host_port is None
    assert mapping.container_port == 80


@pytest.mark.parametrize("value", ["127.0.0.1:8080:80", "80:http", ""])
def test_port_string_grammar_violations(value):
    with pytest.raises(FieldParseError) as exc:
        ComposeParser(context={}).parse_port_string(value, service="web")
    assert "web" in str(exc.value)
    assert exc.value.suggestion


def test_bad_port_string_aborts_extraction():
    content = "services:\n  web:\n    image: nginx\n    ports: ['1:2:3']\n"
    with pytest.raises(D2KError):
        ComposeParser(context={}).parse_from_string(content)


def test_port_forms_in_service():
    content = """
services:
  web:
    image: nginx
    ports:
      - 8000
      - "443:443"
      - target: 9000
        published: 19000
        protocol: udp
    expose:
      - "9100"
      - bogus
"""
    ports = ComposeParser(context={}).parse_from_string(content).service('web').ports
    assert [(p.host_port, p.container_port) for p in ports] == [
        (None, 8000), (443, 443), (19000, 9000), (None, 9100), (None, 8080),
    ]
    assert ports[2].protocol == 'UDP'
    assert ports[3].exposed and ports[4].exposed
    assert not ports[0].exposed


def test_environment_list_and_dict_forms():
    content = """
services:
  a:
    environment:
      - KEY=value=with=equals
      - NO_VALUE
  b:
    environment:
      FLAG: true
      EMPTY:
      NUM: 5
"""
    model = ComposeParser(context={}).parse_from_string(content)
    assert model.service('a').environment == {'KEY': 'value=with=equals'}
    assert model.service('b').environment == {'FLAG': 'true', 'EMPTY': '', 'NUM': '5'}


def test_volume_strings_and_mount_types():
    content = """
services:
  app:
    volumes:
      - data:/data
      - ./src:/app:ro
      - /var/run/docker.sock:/var/run/docker.sock:ro,z
      - type: tmpfs
        target: /cache
      - type: bind
        source: /etc/hosts
        target: /etc/hosts
        read_only: true
    tmpfs:
      - /run:size=64m
"""
    volumes = ComposeParser(context={}).parse_from_string(content).service('app').volumes
    assert [v.mount_type for v in volumes] == [
        MountType.VOLUME, MountType.BIND, MountType.BIND, MountType.TMPFS, MountType.BIND, MountType.TMPFS,
    ]
    assert [v.read_only for v in volumes] == [False, True, True, False, True, False]
    assert volumes[5].target == '/run'


def test_named_pipe_mount():
    parser = ComposeParser(context={})
    assert parser.mount_type_for('//./pipe/docker_engine') == MountType.NAMED_PIPE
    assert parser.mount_type_for('\\\\.\\pipe\\docker_engine') == MountType.NAMED_PIPE
    assert parser.mount_type_for('~/config') == MountType.BIND
    assert parser.mount_type_for('named') == MountType.VOLUME


def test_volume_string_without_target_fails():
    with pytest.raises(FieldParseError):
        ComposeParser(context={}).parse_volume_string("just_a_name", service="db")


def test_resource_limits_and_health_check():
    content = """
services:
  api:
    image: python:3.12
    cpu_shares: 512
    pids_limit: 100
    deploy:
      resources:
        limits:
          memory: 512m
          cpus: '0.5'
    healthcheck:
      test: ["CMD", "curl", "-f", "http://localhost/health"]
      interval: 30s
      timeout: 5s
      retries: 4
      start_period: 10s
"""
    svc = ComposeParser(context={}).parse_from_string(content).service('api')
    assert svc.resource_limits.memory == '512m'
    assert svc.resource_limits.cpu == '0.5'
    assert svc.resource_limits.cpu_shares == 512
    assert svc.resource_limits.pids_limit == 100
    assert svc.health_check.test == ["CMD", "curl", "-f", "http://localhost/health"]
    assert svc.health_check.retries == 4
    assert svc.health_check.interval == '30s'


def test_disabled_health_check():
    content = "services:\n  a:\n    healthcheck:\n      disable: true\n"
    assert ComposeParser(context={}).parse_from_string(content).service('a').health_check is None


def test_top_level_sections():
    content = """
services:
  a: {image: x}
volumes:
  data:
    driver: local
    external: true
networks:
  back:
    driver: overlay
    ipam:
      config:
        - subnet: 172.28.0.0/16
          gateway: 172.28.0.1
secrets:
  token:
    file: ./token.txt
configs:
  app_conf:
    external: true
"""
    model = ComposeParser(context={}).parse_from_string(content)
    assert model.volumes[0].external
    assert model.networks[0].driver == 'overlay'
    assert model.networks[0].ipam.config[0].subnet == '172.28.0.0/16'
    assert model.networks[0].ipam.config[0].gateway == '172.28.0.1'
    assert model.secrets[0].file == './token.txt'
    assert model.configs[0].external


def test_interpolation_from_context():
    content = "services:\n  web:\n    image: nginx:${TAG:-latest}\n    environment:\n      HOST: ${HOST}\n"
    model = ComposeParser(context={'HOST': 'example.org'}).parse_from_string(content)
    web = model.service('web')
    assert web.image == 'nginx:latest'
    assert web.environment['HOST'] == 'example.org'


def test_dotenv_file_beside_compose_file(tmp_path):
    (tmp_path / ".env").write_text("TAG=1.25\nPORT=8081\n")
    compose_file = tmp_path / "docker-compose.yml"
    compose_file.write_text("services:\n  web:\n    image: nginx:${TAG}\n    ports: ['${PORT}:80']\n")

    model = ComposeParser(context={'PORT': '9090'}).parse(str(compose_file))
    web = model.service('web')
    assert web.image == 'nginx:1.25'
    # parser context wins over .env
    assert web.ports[0].host_port == 9090


def test_interpolation_can_be_disabled():
    content = "services:\n  web:\n    image: 'nginx:${TAG}'\n"
    model = ComposeParser(context={}, interpolate=False).parse_from_string(content)
    assert model.service('web').image == 'nginx:${TAG}'
