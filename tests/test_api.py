"""
Tests for the kubechat HTTP API.
"""

import os
import sys

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from conftest import StaticConfigProvider
from fixtures.cluster_objects import make_deployment, make_node, make_pod
from kubechat.main import create_app
from kubechat.modules.config import ConfigModule
from kubechat.modules.gateway import DRY_RUN_MESSAGE, GatewayFactory
from kubechat.modules.kube import ClusterError

HEADERS = {"X-API-Key": "test-key"}


def build_services(env, fake_kube, authority, audit_sink, require_auth=True):
    env.setenv("AUDIT_REDIS_ENABLED", "false")
    env.setenv("RATE_LIMIT", "5")
    services = GatewayFactory.build(
        ConfigModule(),
        StaticConfigProvider(require_auth=require_auth),
        kube_client=fake_kube,
        authority=authority,
    )
    services.gateway.recorder.sinks.append(audit_sink)
    return services


@pytest.fixture
def services(clean_env, fake_kube, authority, audit_sink):
    fake_kube.pods = [make_pod("web-1")]
    fake_kube.nodes = [make_node("node-1")]
    fake_kube.deployments[("default", "frontend")] = make_deployment("frontend")
    return build_services(clean_env, fake_kube, authority, audit_sink)


@pytest.fixture
def client(services):
    with TestClient(create_app(services)) as client:
        yield client


def execute(client, command, dry_run=False, headers=HEADERS):
    return client.post(
        "/api/v1/execute", json={"command": command, "dry_run": dry_run}, headers=headers
    )


class TestExecute:
    """Test POST /api/v1/execute."""

    def test_get_pods(self, client, audit_sink):
        response = execute(client, "kubectl get pods -n default")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["output"].startswith("NAME\tREADY\tSTATUS\tRESTARTS\tAGE\nweb-1\t1/1\tRunning\t0\t")
        assert body["code"] is None
        assert body["cluster"] == "test-cluster"
        assert body["dry_run"] is False
        assert body["executed_at"]
        assert audit_sink.records[0].identity == "operator"

    def test_blocked_verb(self, client, audit_sink):
        response = execute(client, "kubectl delete pod foo")

        assert response.status_code == 403
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "ERR_KUBECTL_VALIDATION"
        assert body["details"] == "blocked-verb"
        assert len(audit_sink.records) == 1

    def test_injection(self, client, authority):
        response = execute(client, "kubectl get pods; rm -rf /")

        assert response.status_code == 403
        assert response.json()["details"] == "injection"
        assert authority.calls == []

    def test_rbac_denied(self, client, authority):
        authority.allowed = False
        authority.reason = "RBAC: access denied"

        response = execute(client, "kubectl get pods -n prod")

        assert response.status_code == 403
        body = response.json()
        assert body["code"] == "ERR_RBAC_DENIED"
        assert "RBAC: access denied" in body["error"]

    def test_syntax_error(self, client, audit_sink):
        response = execute(client, "helm list all")

        assert response.status_code == 400
        assert response.json()["code"] == "ERR_INVALID_SYNTAX"
        assert len(audit_sink.records) == 1

    def test_dry_run_flag(self, client, fake_kube):
        response = execute(client, "kubectl scale deployment/frontend --replicas=3", dry_run=True)

        assert response.status_code == 200
        body = response.json()
        assert body["output"] == DRY_RUN_MESSAGE
        assert body["dry_run"] is True
        assert fake_kube.called("scale_deployment") == []

    def test_scale(self, client, fake_kube):
        response = execute(client, "kubectl scale deployment/frontend --replicas=4")

        assert response.status_code == 200
        assert response.json()["output"] == "deployment/frontend scaled to 4 replicas"
        assert fake_kube.called("scale_deployment")[0].args == ("frontend", "default", 4)


class TestExecutionStatuses:
    """Test HTTP statuses of execution failures."""

    def test_unsupported(self, client):
        response = execute(client, "kubectl get services")

        assert response.status_code == 400
        assert response.json()["code"] == "ERR_EXECUTION"
        assert response.json()["details"] == "unsupported"

    def test_bad_argument(self, client):
        response = execute(client, "kubectl scale deployment/frontend --replicas=zero")

        assert response.status_code == 400
        assert response.json()["details"] == "bad-argument"

    def test_cluster_error(self, client, fake_kube):
        fake_kube.fail("list_pods", ClusterError(ClusterError.FORBIDDEN, "pods is forbidden", 403))

        response = execute(client, "kubectl get pods")

        assert response.status_code == 502
        assert "Error from server (Forbidden): pods is forbidden" in response.json()["error"]

    def test_timeout_header(self, client, fake_kube):
        fake_kube.delay = 1.0

        response = client.post(
            "/api/v1/execute",
            json={"command": "kubectl get pods"},
            headers={**HEADERS, "X-Request-Timeout": "0.05"},
        )

        assert response.status_code == 504
        assert response.json()["details"] == "timeout"

    @pytest.mark.parametrize("value", ["abc", "0", "-3", "nan", "inf", "-inf"])
    def test_invalid_timeout_header(self, client, value):
        response = client.post(
            "/api/v1/execute",
            json={"command": "kubectl get pods"},
            headers={**HEADERS, "X-Request-Timeout": value},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "ERR_INVALID_INPUT"


class TestRequestRejection:
    """Test failures before the pipeline, which are never audited."""

    def test_missing_api_key(self, client, audit_sink):
        response = execute(client, "kubectl get pods", headers={})

        assert response.status_code == 401
        body = response.json()
        assert body["code"] == "ERR_UNAUTHORIZED"
        assert body["request_id"]
        assert audit_sink.records == []

    def test_wrong_api_key(self, client):
        response = execute(client, "kubectl get pods", headers={"X-API-Key": "nope"})

        assert response.status_code == 401

    def test_command_too_long(self, client, audit_sink):
        response = execute(client, "kubectl get pods " + "a" * 500)

        assert response.status_code == 400
        assert response.json()["code"] == "ERR_COMMAND_TOO_LONG"
        assert audit_sink.records == []

    @pytest.mark.parametrize("payload", [{}, {"command": ""}, {"command": "   "}, {"dry_run": True}])
    def test_invalid_body(self, client, audit_sink, payload):
        response = client.post("/api/v1/execute", json=payload, headers=HEADERS)

        assert response.status_code == 400
        assert response.json()["code"] == "ERR_INVALID_INPUT"
        assert audit_sink.records == []

    def test_rate_limit(self, client, audit_sink):
        statuses = [execute(client, "kubectl get pods").status_code for _ in range(6)]

        assert statuses == [200] * 5 + [429]
        assert len(audit_sink.records) == 5

    def test_rate_limit_envelope(self, client):
        for _ in range(5):
            execute(client, "kubectl get pods")

        response = execute(client, "kubectl get pods")

        body = response.json()
        assert body["code"] == "ERR_RATE_LIMIT"
        assert body["details"] == {"limit": 5, "window_seconds": 60.0}


class TestOtherRoutes:
    """Test dry-run, health and liveness routes."""

    def test_dry_run_route_forces_dry_run(self, client, fake_kube):
        response = client.post(
            "/api/v1/dry-run",
            json={"command": "kubectl get pods", "dry_run": False},
            headers=HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["dry_run"] is True
        assert fake_kube.called("list_pods") == []

    def test_cluster_health(self, client):
        response = client.get("/api/v1/cluster-health", headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["cluster"] == "test-cluster"
        assert body["healthy"] is True
        assert body["nodes"] == {"total": 1, "ready": 1}
        assert body["system_components"]["api_server"] == "ok"

    def test_cluster_health_requires_key(self, client):
        assert client.get("/api/v1/cluster-health").status_code == 401

    def test_cluster_health_rate_limited(self, client):
        statuses = [
            client.get("/api/v1/cluster-health", headers=HEADERS).status_code for _ in range(6)
        ]

        assert statuses == [200] * 5 + [429]

    def test_health_reads_share_limit_with_commands(self, client):
        for _ in range(5):
            execute(client, "kubectl get pods")

        response = client.get("/api/v1/cluster-health", headers=HEADERS)

        assert response.status_code == 429
        assert response.json()["code"] == "ERR_RATE_LIMIT"

    def test_healthz_unauthenticated(self, client):
        response = client.get("/healthz")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_request_id_header(self, client):
        response = client.get("/healthz", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"


class TestLifecycle:
    """Test startup and shutdown of services."""

    def test_shutdown_closes_kube_client(self, services, fake_kube):
        with TestClient(create_app(services)) as client:
            client.get("/healthz")
            assert services.rate_limiter._sweeper_thread is not None

        assert fake_kube.closed
        assert services.rate_limiter._sweeper_thread is None

    def test_anonymous_identity_is_client_address(self, clean_env, fake_kube, authority, audit_sink):
        services = build_services(clean_env, fake_kube, authority, audit_sink, require_auth=False)

        with TestClient(create_app(services)) as client:
            response = execute(client, "kubectl get pods", headers={})

        assert response.status_code == 200
        assert audit_sink.records[0].identity == "testclient"
