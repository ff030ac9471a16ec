"""FlowIdentifierResolver - flow names and aliases to canonical flow ids.

Design:
    Profiles may name their flow by endpoint alias or by display name.
    At startup the resolver fetches the flow listing once, builds a
    name -> id map and rewrites each profile's flow_id in place.

Map building (list order):
    - descriptors without a non-empty string id are skipped
    - endpoint_name -> id; later descriptors overwrite earlier ones
    - otherwise name -> id, only if the key is not taken yet

    So an endpoint alias always wins over a bare name for the same key.

Resolution:
    - flow ids that already look like a UUID pass through
    - known names/aliases are rewritten to their id
    - unknown names stay as they are and the profile is reported unresolved
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from .errors import ProtocolError, TransportError

if TYPE_CHECKING:
    from .config import ConnectionSettings, Profile

logger = logging.getLogger(__name__)

FLOWS_PATH = "/api/v1/flows/"
CANONICAL_ID_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)

FlowFetcher = Callable[[], Awaitable[Any]]


def is_canonical_id(value: str) -> bool:
    """True if value looks like a canonical flow id (UUID)."""
    return bool(CANONICAL_ID_PATTERN.match(value))


def extract_flow_descriptors(payload: Any) -> list[Any]:
    """Unwrap a flow listing.

    Accepts a bare list, {"records": [...]} or {"flows": [...]}.

    Raises:
        ProtocolError: for any other shape
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping):
        for key in ("records", "flows"):
            if isinstance(payload.get(key), list):
                return payload[key]
    raise ProtocolError(
        "Unexpected response structure for flows list. "
        "Expected an array, or {records: [...]}, or {flows: [...]}."
    )


def _usable(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def build_flow_name_map(descriptors: Iterable[Any]) -> dict[str, str]:
    """Build the lookup-key -> canonical id map from flow descriptors."""
    flow_map: dict[str, str] = {}
    for flow in descriptors:
        if not isinstance(flow, Mapping) or not _usable(flow.get("id")):
            logger.debug("Skipping flow entry with missing or invalid id: %r", flow)
            continue

        flow_id = flow["id"]
        endpoint_name = flow.get("endpoint_name")
        name = flow.get("name")

        if _usable(endpoint_name):
            flow_map[endpoint_name] = flow_id
        elif _usable(name):
            if name in flow_map:
                logger.debug(
                    "Flow '%s' (ID: %s) not mapped by name; the key is already in use.",
                    name,
                    flow_id,
                )
            else:
                flow_map[name] = flow_id
        else:
            logger.debug("Skipping flow %s without a usable name or endpoint_name", flow_id)
    return flow_map


@dataclass
class ResolutionReport:
    """Outcome of resolving a batch of profiles (profile ids per outcome)."""

    resolved: list[str] = field(default_factory=list)
    passthrough: list[str] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.unresolved


class FlowIdentifierResolver:
    """Resolves profile flow identifiers to canonical flow ids.

    Example:
        resolver = FlowIdentifierResolver(lambda: fetch_flow_descriptors(http, settings))
        report = await resolver.resolve_profiles(profiles)
    """

    def __init__(self, fetch_flows: FlowFetcher):
        self.fetch_flows = fetch_flows
        self._flow_map: dict[str, str] = {}
        self.is_initialized = False
        self.failed_profiles: set[str] = set()

    @property
    def flow_name_map(self) -> dict[str, str]:
        return dict(self._flow_map)

    async def initialize(self) -> None:
        """Fetch the flow listing and build the map. No-op once successful.

        Raises:
            LangflowChatError: fetch or listing-shape failure; the resolver
                stays uninitialized
        """
        if self.is_initialized:
            logger.info("FlowIdentifierResolver already initialized")
            return

        logger.info("Fetching flow listing")
        payload = await self.fetch_flows()
        descriptors = extract_flow_descriptors(payload)
        self._flow_map = build_flow_name_map(descriptors)
        self.is_initialized = True
        logger.info(
            "Processed %d flow entries, mapped %d flows by name/endpoint_name",
            len(descriptors),
            len(self._flow_map),
        )

    def get_canonical_id(self, identifier: str) -> str | None:
        """Canonical id for a flow id, endpoint alias or name; None if unknown."""
        if not _usable(identifier):
            logger.warning("Invalid flow identifier: %r", identifier)
            return None
        if is_canonical_id(identifier):
            return identifier
        if not self.is_initialized:
            logger.warning("Flow identifier lookup before successful initialization")
        return self._flow_map.get(identifier)

    async def resolve_profiles(self, profiles: Iterable[Profile]) -> ResolutionReport:
        """Rewrite each profile's flow_id to its canonical id, in place.

        Never raises: a failed flow listing is logged and every profile that
        needed a lookup is reported unresolved.
        """
        try:
            await self.initialize()
        except Exception as e:
            logger.error("Error during flow ID resolution: %s", e)

        report = ResolutionReport()
        for profile in profiles:
            configured = profile.flow_id
            if is_canonical_id(configured):
                logger.info(
                    "Profile '%s' uses a canonical flow id '%s'", profile.profile_id, configured
                )
                report.passthrough.append(profile.profile_id)
                continue

            canonical = self._flow_map.get(configured)
            if canonical is None:
                logger.error(
                    "Could not resolve flow '%s' for profile '%s'. This profile will not work.",
                    configured,
                    profile.profile_id,
                )
                report.unresolved.append(profile.profile_id)
                self.failed_profiles.add(profile.profile_id)
                continue

            logger.info(
                "Resolved flow '%s' to '%s' for profile '%s'",
                configured,
                canonical,
                profile.profile_id,
            )
            profile.flow_id = canonical
            report.resolved.append(profile.profile_id)
            self.failed_profiles.discard(profile.profile_id)

        if report.unresolved:
            logger.warning(
                "%d profiles resolved, %d unresolved: %s",
                len(report.resolved),
                len(report.unresolved),
                ", ".join(report.unresolved),
            )
        return report


async def fetch_flow_descriptors(http: httpx.AsyncClient, settings: ConnectionSettings) -> Any:
    """GET the Langflow flow listing.

    Raises:
        TransportError: network failure or non-2xx status
        ProtocolError: the body is not JSON
    """
    url = settings.endpoint_url.rstrip("/") + FLOWS_PATH
    headers = {"Accept": "application/json"}
    if settings.api_key:
        headers["Authorization"] = f"Bearer {settings.api_key}"

    try:
        response = await http.get(
            url,
            params={"remove_example_flows": "true", "header_flows": "true"},
            headers=headers,
        )
    except httpx.HTTPError as e:
        raise TransportError(f"Failed to fetch flows from Langflow: {e}") from e

    if response.is_error:
        raise TransportError(
            f"Failed to fetch flows from Langflow. Status: {response.status_code} "
            f"{response.reason_phrase}. Body: {response.text[:500]}"
        )

    try:
        return response.json()
    except ValueError as e:
        raise ProtocolError(f"Invalid JSON in flows listing: {e}", raw=response.text) from e
