"""langflow-chat - resolve profile flow names to canonical flow ids at startup."""

import asyncio

import httpx

import langflow_chat as lc
from langflow_chat.flows import fetch_flow_descriptors

profiles = [
    lc.Profile(profile_id="support", flow_id="support-bot"),  # endpoint alias
    lc.Profile(profile_id="sales", flow_id="Sales Assistant"),  # display name
    lc.Profile(profile_id="docs", flow_id="0b7c3c5e-9a42-4f7d-9a6e-0e8d3f1b2c4d"),  # already canonical
]


async def main() -> None:
    settings = lc.load_settings()
    async with httpx.AsyncClient() as http:
        resolver = lc.FlowIdentifierResolver(lambda: fetch_flow_descriptors(http, settings))
        report = await resolver.resolve_profiles(profiles)

    for profile in profiles:
        print(profile.profile_id, "->", profile.flow_id)
    if not report.ok:
        print("unresolved:", ", ".join(report.unresolved))


asyncio.run(main())
