"""Tests for HTTP test execution."""

from unittest.mock import AsyncMock

import pytest
from aioresponses import aioresponses

from yamltest.config import RunnerConfig
from yamltest.errors import ConfigurationError, EvaluationFailure
from yamltest.http_test import describe_request, execute_http_test, prepare_request
from yamltest.kubectl import KubectlClient, ServiceEndpoint
from yamltest.models.test_definition import (
    HttpRequest,
    HttpTest,
    Source,
    parse_test_definition,
)
from yamltest.variables import VariableStore


def _http_test(raw: dict) -> HttpTest:
    test = parse_test_definition(raw)
    assert isinstance(test, HttpTest)
    return test


async def test_prepare_request_interpolates(store: VariableStore) -> None:
    """URL and string headers are interpolated, other values kept."""
    store.set("HOST", "api.local")
    store.set("TOKEN", "s3cret")
    request = HttpRequest(
        url="http://${HOST}",
        path="/v1/items",
        headers={"Authorization": "Bearer $TOKEN", "X-Retries": 3},
    )

    prepared = await prepare_request(request, Source(), store, KubectlClient())

    assert prepared.full_url == "http://api.local/v1/items"
    assert prepared.headers == {"Authorization": "Bearer s3cret", "X-Retries": 3}
    assert request.url == "http://${HOST}"


async def test_prepare_request_discovers_load_balancer(store: VariableStore) -> None:
    """A local request against a Service without url uses its ingress."""
    kubectl = KubectlClient()
    kubectl.discover_load_balancer = AsyncMock(  # type: ignore[method-assign]
        return_value=ServiceEndpoint(ip="203.0.113.7", port=8443)
    )
    source = Source.model_validate(
        {"selector": {"kind": "Service", "metadata": {"name": "api"}}}
    )
    request = HttpRequest(scheme="https", port="https", path="/health")

    prepared = await prepare_request(request, source, store, kubectl)

    assert prepared.full_url == "https://203.0.113.7:8443/health"
    kubectl.discover_load_balancer.assert_awaited_once_with(source.selector, "https")


async def test_prepare_request_requires_url(store: VariableStore) -> None:
    """Without url or Service selector the request is invalid."""
    with pytest.raises(ConfigurationError) as exc_info:
        await prepare_request(HttpRequest(), Source(), store, KubectlClient())
    assert str(exc_info.value) == "HTTP request requires a url"


def test_describe_request() -> None:
    """Pod requests mention the pod they are sent from."""
    source = Source.model_validate(
        {"type": "pod", "selector": {"metadata": {"name": "web-0"}}}
    )
    request = HttpRequest(url="http://svc", method="POST", path="/x")
    assert describe_request(request, source) == (
        "POST http://svc/x (via pod default/web-0)"
    )


async def test_execute_http_test_sets_vars(
    store: VariableStore, runner_config: RunnerConfig
) -> None:
    """A passing test publishes values from the response."""
    test = _http_test(
        {
            "http": {
                "url": "http://api.local",
                "method": "POST",
                "path": "/items",
                "body": {"name": "widget"},
            },
            "expect": {
                "statusCode": 201,
                "bodyJsonPath": [
                    {"path": "$.name", "comparator": "equals", "value": "widget"}
                ],
            },
            "setVars": {
                "ITEM_ID": {"jsonPath": "$.id"},
                "LOCATION": {"header": "Location"},
            },
        }
    )
    with aioresponses() as m:
        m.post(
            "http://api.local/items",
            status=201,
            payload={"id": 7, "name": "widget"},
            headers={"Location": "/items/7"},
        )

        assert await execute_http_test(test, store, KubectlClient(), runner_config)

    assert store.get("ITEM_ID") == "7"
    assert store.get("LOCATION") == "/items/7"


async def test_execute_http_test_status_mismatch(
    store: VariableStore, runner_config: RunnerConfig
) -> None:
    """Non-2xx responses are validated rather than raised."""
    test = _http_test(
        {"http": {"url": "http://api.local"}, "expect": {"statusCode": 200}}
    )
    with aioresponses() as m:
        m.get("http://api.local/", status=503, body="unavailable")

        with pytest.raises(EvaluationFailure) as exc_info:
            await execute_http_test(test, store, KubectlClient(), runner_config)

    assert str(exc_info.value) == "Status code mismatch: expected 200, got 503"
