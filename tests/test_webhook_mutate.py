from __future__ import annotations

import base64
import json
from typing import Any, Dict, Optional

from fastapi.testclient import TestClient

import tzwebhook.api.webhook as ws
from tzwebhook.config import WebhookConfig
from tzwebhook.core.annotations import STATUS_KEY
from tzwebhook.core.engine import DecisionEngine


def _review(obj: Any, *, namespace: str = "default", api_version: str = "admission.k8s.io/v1") -> Dict[str, Any]:
    return {
        "apiVersion": api_version,
        "kind": "AdmissionReview",
        "request": {
            "uid": "705ab4f5-6393-11e8-b7cc-42010a800002",
            "kind": {"group": "", "version": "v1", "kind": "Pod"},
            "resource": {"group": "", "version": "v1", "resource": "pods"},
            "namespace": namespace,
            "operation": "CREATE",
            "userInfo": {"username": "system:serviceaccount:kube-system:replicaset-controller"},
            "object": obj,
        },
    }


def _pod(annotations: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {"generateName": "web-7d4b9c-"}
    if annotations is not None:
        metadata["annotations"] = annotations
    return {"metadata": metadata, "spec": {"containers": [{"name": "app", "image": "nginx"}], "volumes": []}}


def _client(mount) -> TestClient:
    ws.app.state.engine = DecisionEngine(WebhookConfig(mount=mount, ignored_namespaces=frozenset({"kube-system"})))
    return TestClient(ws.app)


def test_healthz() -> None:
    r = TestClient(ws.app).get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_mutate_returns_base64_json_patch(mount) -> None:
    r = _client(mount).post("/mutate", json=_review(_pod()))
    assert r.status_code == 200
    body = r.json()
    assert body["apiVersion"] == "admission.k8s.io/v1"
    assert body["kind"] == "AdmissionReview"

    resp = body["response"]
    assert resp["uid"] == "705ab4f5-6393-11e8-b7cc-42010a800002"
    assert resp["allowed"] is True
    assert resp["patchType"] == "JSONPatch"
    ops = json.loads(base64.b64decode(resp["patch"]))
    assert [op["path"] for op in ops] == ["/spec/volumes", "/spec/containers", "/metadata/annotations"]
    assert ops[2]["value"] == {STATUS_KEY: "injected"}


def test_mutate_echoes_v1beta1_api_version(mount) -> None:
    r = _client(mount).post("/mutate", json=_review(_pod(), api_version="admission.k8s.io/v1beta1"))
    assert r.json()["apiVersion"] == "admission.k8s.io/v1beta1"


def test_mutate_ignored_namespace_has_no_patch(mount) -> None:
    r = _client(mount).post("/mutate", json=_review(_pod(), namespace="kube-system"))
    assert r.status_code == 200
    resp = r.json()["response"]
    assert resp == {"uid": "705ab4f5-6393-11e8-b7cc-42010a800002", "allowed": True}


def test_mutate_already_injected_has_no_patch(mount) -> None:
    r = _client(mount).post("/mutate", json=_review(_pod(annotations={STATUS_KEY: "INJECTED"})))
    resp = r.json()["response"]
    assert resp["allowed"] is True
    assert "patch" not in resp


def test_mutate_fails_open_on_bad_pod(mount) -> None:
    r = _client(mount).post("/mutate", json=_review({"spec": {"containers": [{"image": "no-name"}]}}))
    assert r.status_code == 200
    resp = r.json()["response"]
    assert resp["allowed"] is True
    assert "patch" not in resp
    assert resp["status"]["message"]


def test_mutate_rejects_empty_body(mount) -> None:
    r = _client(mount).post("/mutate", content=b"", headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    assert r.json()["detail"] == "empty body"


def test_mutate_rejects_non_json_content_type(mount) -> None:
    r = _client(mount).post("/mutate", content=json.dumps(_review(_pod())), headers={"Content-Type": "text/plain"})
    assert r.status_code == 415


def test_mutate_accepts_json_content_type_with_charset(mount) -> None:
    r = _client(mount).post(
        "/mutate",
        content=json.dumps(_review(_pod())),
        headers={"Content-Type": "application/json; charset=utf-8"},
    )
    assert r.status_code == 200


def test_mutate_rejects_undecodable_review(mount) -> None:
    client = _client(mount)
    r = client.post("/mutate", content=b"{not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    r = client.post("/mutate", json={"apiVersion": "admission.k8s.io/v1", "kind": "AdmissionReview"})
    assert r.status_code == 400
    r = client.post("/mutate", json={"request": {"object": {}}})
    assert r.status_code == 400


def test_engine_is_built_from_env_when_not_configured(monkeypatch) -> None:
    monkeypatch.setenv("TIMEZONE", "Europe/Berlin")
    monkeypatch.setenv("IGNORE_NAMESPACES", "")
    r = TestClient(ws.app).post("/mutate", json=_review(_pod(), namespace="kube-system"))
    ops = json.loads(base64.b64decode(r.json()["response"]["patch"]))
    assert ops[0]["value"] == [{"name": "local-tz", "hostPath": {"path": "/usr/share/zoneinfo/Europe/Berlin"}}]
