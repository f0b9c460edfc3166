"""Endpoint gateway for the scouting service.

Read methods return raw parsed bodies; shaping them into rows is the
normalizer's job. Every mutation runs under the mutation deadline.
"""

import asyncio
from pathlib import Path
from typing import Any

from .client import RemoteClient

DEFAULT_MUTATION_TIMEOUT = 5.0


class ScoutingApi:
    """Typed access to the scouting service endpoints."""

    def __init__(
        self,
        client: RemoteClient,
        mutation_timeout: float = DEFAULT_MUTATION_TIMEOUT,
    ):
        self.client = client
        self.mutation_timeout = mutation_timeout

    async def _mutate(self, path: str, method: str = "POST", **kwargs: Any) -> Any:
        return await self.client.request(
            path, method=method, deadline=self.mutation_timeout, **kwargs
        )

    # ==================== General data ====================

    async def fetch_teams(self, page: int) -> Any:
        return await self.client.request("/public/teams", params={"page": page})

    async def fetch_events(self, year: int) -> Any:
        return await self.client.request(f"/public/events/{year}")

    # ==================== Event data ====================

    async def fetch_match_schedule(self, event_key: str) -> Any:
        return await self.client.request(f"/public/matchSchedule/{event_key}")

    async def fetch_event_teams(self, event_key: str) -> Any:
        return await self.client.request(f"/public/event/teams/{event_key}")

    async def fetch_event_images(self) -> Any:
        return await self.client.request("/event/images")

    async def fetch_super_scout_fields(self) -> Any:
        return await self.client.request("/scout/superscout/fields")

    # ==================== Markers ====================

    async def fetch_already_scouted(self) -> Any:
        return await self.client.request("/scout/scouted")

    async def fetch_already_pit_scouted(self) -> Any:
        return await self.client.request("/scout/pitscouted")

    async def fetch_already_prescouted(self) -> Any:
        return await self.client.request("/scout/prescout")

    async def fetch_already_super_scouted(self) -> Any:
        return await self.client.request("/scout/superscouted")

    # ==================== Organization data ====================

    async def fetch_pick_lists(self, organization_id: int) -> Any:
        return await self.client.request(
            "/picklists", params={"organization_id": organization_id}
        )

    # ==================== User ====================

    async def fetch_user_organizations(self) -> Any:
        return await self.client.request("/user/organizations")

    async def get_user_event(self) -> Any:
        return await self.client.request("/user/event")

    async def get_user_organization(self) -> Any:
        return await self.client.request("/user/organization")

    async def update_organization_selection(self, user_organization_id: int) -> Any:
        return await self._mutate(
            "/user/organization",
            method="PATCH",
            body={"user_organization_id": user_organization_id},
        )

    # ==================== Submissions ====================

    async def submit_match(self, payload: dict[str, Any]) -> Any:
        return await self._mutate("/scout/submit", body=payload)

    async def submit_pit(self, payload: dict[str, Any]) -> Any:
        return await self._mutate("/scout/pit", body=payload)

    async def submit_prescout(self, payload: dict[str, Any]) -> Any:
        return await self._mutate("/scout/prescout", body=payload)

    async def submit_super_scout(self, payload: dict[str, Any]) -> Any:
        return await self._mutate("/scout/superscout", body=payload)

    async def upload_robot_photo(
        self,
        team_number: int,
        path: Path,
        description: str | None = None,
    ) -> Any:
        """Upload a photo file as multipart form data."""
        content = await asyncio.to_thread(path.read_bytes)
        files = {"file": (path.name, content, "image/jpeg")}
        data = {"description": description} if description else None
        return await self._mutate(f"/teams/{team_number}/images", files=files, data=data)
