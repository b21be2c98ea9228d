# tests/conftest.py

import pytest

from kubexplorer.core import k8s_client


@pytest.fixture(autouse=True)
def mock_settings_env_vars(monkeypatch):
    """
    Pytest fixture to mock environment variables for the config module.

    This fixture runs automatically for every test (`autouse=True`). It uses
    monkeypatch to set environment variables, ensuring that configs built by
    the tests are predictable and isolated from the actual environment.
    """
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("PROMETHEUS_NAMESPACE", "monitoring")
    monkeypatch.setenv("PROMETHEUS_QUERY_STEP", "1m")
    monkeypatch.delenv("PROMETHEUS_BEARER_TOKEN", raising=False)
    monkeypatch.delenv("KUBECONFIG", raising=False)


@pytest.fixture(autouse=True)
def reset_k8s_config(monkeypatch):
    """
    Forgets any Kubernetes configuration loaded by a previous test so each
    test decides for itself whether a cluster is reachable.
    """
    monkeypatch.setattr(k8s_client, "_CONFIG_LOADED", False)
