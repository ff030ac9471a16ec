"""Tests for FlowIdentifierResolver and the flow name map."""

from __future__ import annotations

import httpx
import pytest

from langflow_chat.config import ConnectionSettings, Profile
from langflow_chat.errors import ProtocolError, TransportError
from langflow_chat.flows import (
    FLOWS_PATH,
    FlowIdentifierResolver,
    build_flow_name_map,
    extract_flow_descriptors,
    fetch_flow_descriptors,
    is_canonical_id,
)

U1 = "11111111-1111-4111-8111-111111111111"
U2 = "22222222-2222-4222-8222-222222222222"
U3 = "33333333-3333-4333-8333-333333333333"


def fetcher(payload, calls: list | None = None):
    async def fetch():
        if calls is not None:
            calls.append(1)
        if isinstance(payload, Exception):
            raise payload
        return payload

    return fetch


class TestFlowNameMap:
    """Map building precedence."""

    def test_endpoint_name_beats_earlier_bare_name(self):
        flow_map = build_flow_name_map(
            [{"id": U1, "name": "X"}, {"id": U2, "name": "Other", "endpoint_name": "X"}]
        )

        assert flow_map["X"] == U2

    def test_bare_name_does_not_replace_endpoint_name(self):
        flow_map = build_flow_name_map(
            [{"id": U2, "name": "Other", "endpoint_name": "X"}, {"id": U1, "name": "X"}]
        )

        assert flow_map["X"] == U2

    def test_later_endpoint_name_overwrites(self):
        flow_map = build_flow_name_map(
            [{"id": U1, "endpoint_name": "X"}, {"id": U2, "endpoint_name": "X"}]
        )

        assert flow_map == {"X": U2}

    def test_first_bare_name_wins(self):
        flow_map = build_flow_name_map([{"id": U1, "name": "X"}, {"id": U3, "name": "X"}])

        assert flow_map == {"X": U1}

    def test_endpoint_name_hides_display_name(self):
        """A flow with an endpoint alias is only reachable by that alias."""
        flow_map = build_flow_name_map([{"id": U1, "name": "Pretty", "endpoint_name": "alias"}])

        assert flow_map == {"alias": U1}

    @pytest.mark.parametrize(
        "entry",
        [
            {"name": "no id"},
            {"id": "", "name": "blank id"},
            {"id": 42, "name": "numeric id"},
            "not a mapping",
            None,
        ],
    )
    def test_invalid_entries_skipped(self, entry):
        assert build_flow_name_map([entry, {"id": U1, "name": "ok"}]) == {"ok": U1}

    def test_blank_names_skipped(self):
        assert build_flow_name_map([{"id": U1, "name": "  ", "endpoint_name": ""}]) == {}


class TestListingShapes:
    """extract_flow_descriptors() envelopes."""

    def test_bare_list(self):
        assert extract_flow_descriptors([{"id": U1}]) == [{"id": U1}]

    def test_records_envelope(self):
        assert extract_flow_descriptors({"records": [{"id": U1}]}) == [{"id": U1}]

    def test_flows_envelope(self):
        assert extract_flow_descriptors({"flows": [{"id": U1}]}) == [{"id": U1}]

    @pytest.mark.parametrize("payload", [{"items": []}, "flows", None, {"records": "x"}])
    def test_unexpected_shape(self, payload):
        with pytest.raises(ProtocolError):
            extract_flow_descriptors(payload)


class TestCanonicalId:
    def test_uuid(self):
        assert is_canonical_id(U1)
        assert is_canonical_id(U1.upper())

    @pytest.mark.parametrize("value", ["my-flow", U1 + "0", U1.replace("-", ""), ""])
    def test_not_uuid(self, value: str):
        assert not is_canonical_id(value)


class TestResolver:
    """FlowIdentifierResolver.resolve_profiles()."""

    LISTING = {
        "records": [
            {"id": U1, "name": "Support Bot", "endpoint_name": "support"},
            {"id": U2, "name": "Sales"},
        ]
    }

    @pytest.mark.asyncio
    async def test_rewrites_aliases_in_place(self):
        resolver = FlowIdentifierResolver(fetcher(self.LISTING))
        profiles = [
            Profile(profile_id="a", flow_id="support"),
            Profile(profile_id="b", flow_id="Sales"),
            Profile(profile_id="c", flow_id=U3),
        ]

        report = await resolver.resolve_profiles(profiles)

        assert [p.flow_id for p in profiles] == [U1, U2, U3]
        assert report.resolved == ["a", "b"]
        assert report.passthrough == ["c"]
        assert report.ok

    @pytest.mark.asyncio
    async def test_unresolved_left_unchanged(self):
        resolver = FlowIdentifierResolver(fetcher(self.LISTING))
        profile = Profile(profile_id="x", flow_id="missing")

        report = await resolver.resolve_profiles([profile])

        assert profile.flow_id == "missing"
        assert report.unresolved == ["x"]
        assert not report.ok
        assert resolver.failed_profiles == {"x"}

    @pytest.mark.asyncio
    async def test_second_run_is_identity(self):
        calls: list = []
        resolver = FlowIdentifierResolver(fetcher(self.LISTING, calls))
        profiles = [Profile(profile_id="a", flow_id="support")]

        await resolver.resolve_profiles(profiles)
        report = await resolver.resolve_profiles(profiles)

        assert profiles[0].flow_id == U1
        assert report.passthrough == ["a"]
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_fetch_failure_does_not_raise(self):
        resolver = FlowIdentifierResolver(fetcher(TransportError("down")))
        profiles = [
            Profile(profile_id="a", flow_id="support"),
            Profile(profile_id="c", flow_id=U3),
        ]

        report = await resolver.resolve_profiles(profiles)

        assert resolver.is_initialized is False
        assert report.unresolved == ["a"]
        assert report.passthrough == ["c"]
        assert profiles[0].flow_id == "support"

    @pytest.mark.asyncio
    async def test_initialize_retries_after_failure(self):
        resolver = FlowIdentifierResolver(fetcher(TransportError("down")))
        with pytest.raises(TransportError):
            await resolver.initialize()

        resolver.fetch_flows = fetcher(self.LISTING)
        await resolver.initialize()

        assert resolver.is_initialized
        assert resolver.get_canonical_id("support") == U1

    @pytest.mark.asyncio
    async def test_get_canonical_id(self):
        resolver = FlowIdentifierResolver(fetcher(self.LISTING))
        await resolver.initialize()

        assert resolver.get_canonical_id("Sales") == U2
        assert resolver.get_canonical_id(U3) == U3
        assert resolver.get_canonical_id("Support Bot") is None
        assert resolver.get_canonical_id("  ") is None

    @pytest.mark.asyncio
    async def test_flow_name_map_is_a_copy(self):
        resolver = FlowIdentifierResolver(fetcher(self.LISTING))
        await resolver.initialize()

        resolver.flow_name_map["support"] = U3

        assert resolver.get_canonical_id("support") == U1


class TestFetchFlowDescriptors:
    """fetch_flow_descriptors() against a mock transport."""

    settings = ConnectionSettings(endpoint_url="http://langflow:7860/", api_key="secret")

    @pytest.mark.asyncio
    async def test_request_shape(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[{"id": U1, "name": "a"}])

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            payload = await fetch_flow_descriptors(http, self.settings)

        assert payload == [{"id": U1, "name": "a"}]
        (request,) = seen
        assert request.url.path == FLOWS_PATH
        assert request.url.params["remove_example_flows"] == "true"
        assert request.url.params["header_flows"] == "true"
        assert request.headers["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_no_api_key_no_header(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[])

        settings = ConnectionSettings(endpoint_url="http://langflow:7860")
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            await fetch_flow_descriptors(http, settings)

        assert "Authorization" not in seen[0].headers

    @pytest.mark.asyncio
    async def test_error_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, text="forbidden")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(TransportError, match="403"):
                await fetch_flow_descriptors(http, self.settings)

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(ProtocolError):
                await fetch_flow_descriptors(http, self.settings)

    @pytest.mark.asyncio
    async def test_network_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(TransportError):
                await fetch_flow_descriptors(http, self.settings)
