"""
Property-based tests for the Domainr client.

The Domainr API is replaced by an httpx.MockTransport, so suggestion
parsing, status parsing and the failure semantics of both operations can be
checked without network access.
"""

import asyncio

import httpx
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from domain_search.classifier import classify
from domain_search.config import DomainrConfig
from domain_search.domainr_client import DomainrClient
from domain_search.enums import AvailabilityStatus, ProviderErrorCode
from domain_search.exceptions import ProviderError


@st.composite
def domain_strategy(draw) -> str:
    sld = draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789"),
        min_size=1,
        max_size=15,
    ))
    tld = draw(st.sampled_from(["com", "net", "io", "jp", "co.jp"]))
    return f"{sld}.{tld}"


def make_client(handler, api_key="test-key", simulation_mode=False) -> DomainrClient:
    return DomainrClient(
        DomainrConfig(api_key=api_key),
        simulation_mode=simulation_mode,
        transport=httpx.MockTransport(handler),
    )


def run(client: DomainrClient, operation):
    async def _run():
        async with client:
            return await operation(client)

    return asyncio.run(_run())


def never_called(request: httpx.Request) -> httpx.Response:
    raise AssertionError("provider must not be called")


class TestSuggestProperty:
    """
    Property 10: Suggestions keep provider order without duplicates.

    *For any* provider result list, suggest SHALL return normalized domains
    in provider order with later duplicates removed.
    """

    @given(domains=st.lists(domain_strategy(), max_size=15))
    @settings(max_examples=50)
    def test_order_and_dedup(self, domains: list[str]) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            results = [{"domain": d.upper(), "zone": d.split(".", 1)[1]} for d in domains]
            return httpx.Response(200, json={"results": results})

        candidates = run(make_client(handler), lambda c: c.suggest("example"))

        expected = list(dict.fromkeys(domains))
        assert candidates == expected

    def test_request_shape(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["query"] = request.url.params.get("query")
            seen["key"] = request.headers.get("x-rapidapi-key")
            seen["host"] = request.headers.get("x-rapidapi-host")
            return httpx.Response(200, json={"results": []})

        run(make_client(handler), lambda c: c.suggest("coffee shop"))

        assert seen["path"].endswith("/search")
        assert seen["query"] == "coffee shop"
        assert seen["key"] == "test-key"
        assert seen["host"] == "domainr.p.rapidapi.com"

    def test_missing_key_raises_without_request(self) -> None:
        client = make_client(never_called, api_key=None)
        assert client.is_configured is False

        with pytest.raises(ProviderError) as exc_info:
            run(client, lambda c: c.suggest("example"))
        assert exc_info.value.code == ProviderErrorCode.NOT_CONFIGURED.value

    @given(status_code=st.sampled_from([401, 403]))
    @settings(max_examples=5)
    def test_rejected_key_raises(self, status_code: int) -> None:
        client = make_client(lambda request: httpx.Response(status_code, json={}))
        with pytest.raises(ProviderError) as exc_info:
            run(client, lambda c: c.suggest("example"))
        assert exc_info.value.code == ProviderErrorCode.AUTH_REJECTED.value

    @given(status_code=st.sampled_from([500, 502, 503, 504]))
    @settings(max_examples=5)
    def test_server_error_raises(self, status_code: int) -> None:
        client = make_client(lambda request: httpx.Response(status_code, json={}))
        with pytest.raises(ProviderError) as exc_info:
            run(client, lambda c: c.suggest("example"))
        assert exc_info.value.code == ProviderErrorCode.SERVER_ERROR.value

    def test_transport_failures_raise(self) -> None:
        def timeout(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        def refused(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ProviderError) as exc_info:
            run(make_client(timeout), lambda c: c.suggest("example"))
        assert exc_info.value.code == ProviderErrorCode.TIMEOUT.value

        with pytest.raises(ProviderError) as exc_info:
            run(make_client(refused), lambda c: c.suggest("example"))
        assert exc_info.value.code == ProviderErrorCode.NETWORK_ERROR.value

    @given(body=st.sampled_from([b"oops", b"[]", b'{"results": null}', b"{}"]))
    @settings(max_examples=10)
    def test_malformed_body_is_empty(self, body: bytes) -> None:
        client = make_client(lambda request: httpx.Response(200, content=body))
        assert run(client, lambda c: c.suggest("example")) == []

    def test_client_error_is_empty(self) -> None:
        client = make_client(lambda request: httpx.Response(400, json={"message": "bad"}))
        assert run(client, lambda c: c.suggest("example")) == []


class TestBatchStatusProperty:
    """
    Property 11: Batched status never raises.

    *For any* set of domains, batch_status SHALL make one request and return
    records keyed by normalized domain; failures SHALL yield an empty mapping.
    """

    @given(domains=st.lists(domain_strategy(), min_size=1, max_size=10, unique=True))
    @settings(max_examples=50)
    def test_single_batched_request(self, domains: list[str]) -> None:
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request.url.params.get("domain"))
            status = [
                {"domain": d.upper(), "zone": "com", "status": "undelegated inactive", "summary": "inactive"}
                for d in domains
            ]
            return httpx.Response(200, json={"status": status})

        records = run(make_client(handler), lambda c: c.batch_status(domains))

        assert requests == [",".join(domains)]
        assert set(records) == set(domains)
        for domain in domains:
            assert records[domain].summary == "inactive"
            assert records[domain].tokens == frozenset({"undelegated", "inactive"})

    def test_missing_domains_are_absent(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"status": [
                {"domain": "a.com", "status": "active", "summary": "active"},
            ]})

        records = run(make_client(handler), lambda c: c.batch_status(["a.com", "b.com"]))
        assert list(records) == ["a.com"]

    def test_empty_input_makes_no_request(self) -> None:
        assert run(make_client(never_called), lambda c: c.batch_status([])) == {}

    @given(status_code=st.sampled_from([400, 401, 429, 500, 503]))
    @settings(max_examples=10)
    def test_http_failures_are_empty(self, status_code: int) -> None:
        client = make_client(lambda request: httpx.Response(status_code, json={}))
        assert run(client, lambda c: c.batch_status(["a.com"])) == {}

    def test_transport_failure_is_empty(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        assert run(make_client(handler), lambda c: c.batch_status(["a.com"])) == {}

    def test_malformed_body_is_empty(self) -> None:
        client = make_client(lambda request: httpx.Response(200, content=b"<html>"))
        assert run(client, lambda c: c.batch_status(["a.com"])) == {}


MISTYPED_VALUES = st.one_of(
    st.integers(),
    st.booleans(),
    st.floats(allow_nan=False, allow_infinity=False),
    st.lists(st.text(max_size=5), max_size=3),
    st.dictionaries(st.text(max_size=5), st.integers(), max_size=2),
)


class TestMistypedFieldsProperty:
    """
    Property 43: Wrongly typed provider fields degrade instead of crashing.

    *For any* well-formed JSON body whose fields carry the wrong types, suggest
    and batch_status SHALL return without raising, dropping what they cannot
    read, and the resulting records SHALL classify as unknown.
    """

    @given(value=MISTYPED_VALUES.filter(lambda v: not isinstance(v, list)))
    @settings(max_examples=30)
    def test_non_list_results_are_empty(self, value) -> None:
        client = make_client(lambda request: httpx.Response(200, json={"results": value}))
        assert run(client, lambda c: c.suggest("example")) == []

    @given(value=MISTYPED_VALUES.filter(lambda v: not isinstance(v, list)))
    @settings(max_examples=30)
    def test_non_list_status_is_empty(self, value) -> None:
        client = make_client(lambda request: httpx.Response(200, json={"status": value}))
        assert run(client, lambda c: c.batch_status(["a.com"])) == {}

    @given(status=MISTYPED_VALUES, summary=MISTYPED_VALUES, zone=MISTYPED_VALUES)
    @settings(max_examples=50)
    def test_mistyped_record_fields_read_as_absent(self, status, summary, zone) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"status": [
                {"domain": "a.com", "status": status, "summary": summary, "zone": zone},
            ]})

        records = run(make_client(handler), lambda c: c.batch_status(["a.com"]))

        record = records["a.com"]
        assert (record.status, record.summary, record.zone) == (None, None, None)
        assert record.tokens == frozenset()
        assert classify(record) == AvailabilityStatus.UNKNOWN

    def test_mistyped_domains_are_skipped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/status"):
                return httpx.Response(200, json={"status": [
                    {"domain": 7, "summary": "inactive"},
                    {"domain": "b.com", "summary": "inactive"},
                ]})
            return httpx.Response(200, json={"results": [
                {"domain": ["a.com"]}, {"domain": "b.com"}, 5, None,
            ]})

        assert run(make_client(handler), lambda c: c.suggest("example")) == ["b.com"]
        records = run(make_client(handler), lambda c: c.batch_status(["a.com", "b.com"]))
        assert list(records) == ["b.com"]


class TestSimulationModeProperty:
    """
    Property 12: Simulation mode is deterministic and offline.

    *For any* keyword in simulation mode, the client SHALL suggest the
    keyword under .com, .net and .io and report every status as unknown.
    """

    @given(label=st.text(alphabet="abcdefghijklmnopqrstuvwxyz", min_size=4, max_size=15))
    @settings(max_examples=30)
    def test_simulated_suggestions(self, label: str) -> None:
        client = make_client(never_called, api_key=None, simulation_mode=True)
        assert client.is_configured is True

        candidates = run(client, lambda c: c.suggest(label))
        assert candidates == [f"{label}.com", f"{label}.net", f"{label}.io"]

        records = run(
            make_client(never_called, api_key=None, simulation_mode=True),
            lambda c: c.batch_status(candidates),
        )
        assert set(records) == set(candidates)
        assert all(r.summary == "unknown" for r in records.values())

    def test_domain_query_is_kept_first(self) -> None:
        client = make_client(never_called, simulation_mode=True)
        assert run(client, lambda c: c.suggest("coffee.jp")) == [
            "coffee.jp", "coffee.com", "coffee.net", "coffee.io",
        ]
