"""Teams, memberships, projects, activity log and user profiles.

Permission checks raise ``PermissionError``; validation failures raise
``ValueError`` and unknown records ``KeyError``. Every team-level change
appends one activity entry.
"""

from __future__ import annotations

import logging
from typing import Any, cast

from jiralite.config import DEFAULT_LIMITS, DEFAULT_STATUSES, Limits
from jiralite.gateway.base import RecordGateway, eq, is_null
from jiralite.notifications import NotificationService
from jiralite.storage import LocalObjectStorage
from jiralite.timeutil import now_iso
from jiralite.types.core import ActivityRecord
from jiralite.types.enums import ActivityAction, NotificationType, TeamRole
from jiralite.validation import validate_text

logger = logging.getLogger(__name__)

AVATAR_EXTENSIONS = frozenset({"png", "jpg", "jpeg", "gif", "webp"})


class TeamService:
    def __init__(self, gateway: RecordGateway, *, limits: Limits = DEFAULT_LIMITS) -> None:
        self.gateway = gateway
        self.limits = limits
        self.notifications = NotificationService(gateway)

    async def _log(
        self,
        team_id: str,
        actor: str,
        action: ActivityAction,
        *,
        target_type: str,
        target_id: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        (
            await self.gateway.insert(
                "activity_logs",
                {
                    "team_id": team_id,
                    "actor_id": actor,
                    "action": action,
                    "target_type": target_type,
                    "target_id": target_id,
                    "details": details or {},
                },
            )
        ).unwrap()

    async def get_team(self, team_id: str) -> dict[str, Any]:
        rows = (await self.gateway.select("teams", filters=[eq("id", team_id), is_null("deleted_at")], limit=1)).unwrap()
        if not rows:
            raise KeyError(team_id)
        return rows[0]

    async def membership(self, team_id: str, user_id: str) -> dict[str, Any] | None:
        rows = (
            await self.gateway.select("team_members", filters=[eq("team_id", team_id), eq("user_id", user_id)], limit=1)
        ).unwrap()
        return rows[0] if rows else None

    async def members(self, team_id: str) -> list[dict[str, Any]]:
        return (await self.gateway.select("team_members", filters=[eq("team_id", team_id)], order_by="created_at")).unwrap()

    async def _role(self, team_id: str, user_id: str) -> TeamRole | None:
        member = await self.membership(team_id, user_id)
        return TeamRole(member["role"]) if member else None

    # -- teams ----------------------------------------------------------------

    async def create_team(self, name: str, *, owner_id: str) -> dict[str, Any]:
        name, err = validate_text(name, name="team name", max_length=self.limits.team_name_max)
        if err:
            raise ValueError(err)
        team = (await self.gateway.insert("teams", {"name": name.strip(), "owner_id": owner_id})).unwrap()
        (
            await self.gateway.insert("team_members", {"team_id": team["id"], "user_id": owner_id, "role": TeamRole.OWNER})
        ).unwrap()
        await self._log(
            team["id"],
            owner_id,
            ActivityAction.TEAM_CREATED,
            target_type="team",
            target_id=team["id"],
            details={"team_name": team["name"]},
        )
        logger.info("Created team %s", team["id"])
        return team

    async def update_team(self, team_id: str, name: str, *, actor: str) -> dict[str, Any]:
        name, err = validate_text(name, name="team name", max_length=self.limits.team_name_max)
        if err:
            raise ValueError(err)
        name = name.strip()
        team = await self.get_team(team_id)
        if await self._role(team_id, actor) not in (TeamRole.OWNER, TeamRole.ADMIN):
            msg = "Only the owner or an admin can rename a team"
            raise PermissionError(msg)
        if name == team["name"]:
            return team
        updated = (await self.gateway.update("teams", {"name": name}, filters=[eq("id", team_id)])).unwrap()[0]
        await self._log(
            team_id,
            actor,
            ActivityAction.TEAM_UPDATED,
            target_type="team",
            target_id=team_id,
            details={"old_name": team["name"], "new_name": name},
        )
        return updated

    async def add_member(self, team_id: str, user_id: str, *, role: TeamRole = TeamRole.MEMBER) -> dict[str, Any]:
        await self.get_team(team_id)
        if role is TeamRole.OWNER:
            msg = "A team has exactly one owner"
            raise ValueError(msg)
        member = (await self.gateway.insert("team_members", {"team_id": team_id, "user_id": user_id, "role": role})).unwrap()
        await self._log(team_id, user_id, ActivityAction.MEMBER_JOINED, target_type="member", target_id=user_id)
        return member

    async def change_role(self, team_id: str, user_id: str, role: TeamRole | str, *, actor: str) -> dict[str, Any]:
        try:
            new_role = TeamRole(role)
        except ValueError:
            msg = f"Unknown role: {role!r}"
            raise ValueError(msg) from None
        if new_role is TeamRole.OWNER:
            msg = "Ownership cannot be granted by a role change"
            raise ValueError(msg)
        if await self._role(team_id, actor) is not TeamRole.OWNER:
            msg = "Only the team owner can change roles"
            raise PermissionError(msg)
        member = await self.membership(team_id, user_id)
        if member is None:
            raise KeyError(user_id)
        old_role = TeamRole(member["role"])
        if old_role is TeamRole.OWNER:
            msg = "The owner's role cannot be changed"
            raise PermissionError(msg)
        if old_role is new_role:
            return member

        updated = (
            await self.gateway.update("team_members", {"role": new_role}, filters=[eq("id", member["id"])])
        ).unwrap()[0]
        await self._log(
            team_id,
            actor,
            ActivityAction.ROLE_CHANGED,
            target_type="member",
            target_id=user_id,
            details={"old_role": old_role.value, "new_role": new_role.value},
        )
        await self.notifications.notify(
            user_id,
            NotificationType.ROLE_CHANGED,
            "Your team role changed",
            content=f"{old_role.value} -> {new_role.value}",
            link=f"/teams/{team_id}",
        )
        return updated

    async def kick_member(self, team_id: str, user_id: str, *, actor: str) -> None:
        actor_role = await self._role(team_id, actor)
        member = await self.membership(team_id, user_id)
        if member is None:
            raise KeyError(user_id)
        target_role = TeamRole(member["role"])
        allowed = (actor_role is TeamRole.OWNER and target_role is not TeamRole.OWNER) or (
            actor_role is TeamRole.ADMIN and target_role is TeamRole.MEMBER
        )
        if not allowed:
            msg = f"{actor_role or 'non-member'} cannot remove a {target_role}"
            raise PermissionError(msg)
        (await self.gateway.delete("team_members", filters=[eq("id", member["id"])])).unwrap()
        await self._log(team_id, actor, ActivityAction.MEMBER_KICKED, target_type="member", target_id=user_id)

    async def leave_team(self, team_id: str, *, actor: str) -> None:
        member = await self.membership(team_id, actor)
        if member is None:
            raise KeyError(actor)
        if TeamRole(member["role"]) is TeamRole.OWNER:
            msg = "The owner cannot leave their own team"
            raise PermissionError(msg)
        (await self.gateway.delete("team_members", filters=[eq("id", member["id"])])).unwrap()
        await self._log(team_id, actor, ActivityAction.MEMBER_LEFT, target_type="member", target_id=actor)

    async def activity(self, team_id: str, *, limit: int = 50) -> list[ActivityRecord]:
        result = await self.gateway.select(
            "activity_logs", filters=[eq("team_id", team_id)], order_by="created_at", descending=True, limit=limit
        )
        return cast(list[ActivityRecord], result.unwrap())

    # -- projects -------------------------------------------------------------

    async def create_project(
        self,
        team_id: str,
        name: str,
        *,
        actor: str,
        description: str | None = None,
    ) -> dict[str, Any]:
        name, err = validate_text(name, name="project name", max_length=self.limits.project_name_max)
        if err:
            raise ValueError(err)
        description, err = validate_text(
            description, name="description", max_length=self.limits.project_description_max, required=False
        )
        if err:
            raise ValueError(err)
        await self.get_team(team_id)
        if await self._role(team_id, actor) is None:
            msg = "Only team members can create projects"
            raise PermissionError(msg)
        existing = (await self.gateway.count("projects", filters=[eq("team_id", team_id), is_null("deleted_at")])).unwrap()
        if existing >= self.limits.max_projects_per_team:
            msg = f"A team can have at most {self.limits.max_projects_per_team} projects"
            raise ValueError(msg)

        project = (
            await self.gateway.insert(
                "projects",
                {"team_id": team_id, "name": name.strip(), "description": description or None, "owner_id": actor},
            )
        ).unwrap()
        for status in DEFAULT_STATUSES:
            (await self.gateway.insert("project_statuses", {**status, "project_id": project["id"]})).unwrap()
        await self._log(
            team_id,
            actor,
            ActivityAction.PROJECT_CREATED,
            target_type="project",
            target_id=project["id"],
            details={"project_name": project["name"]},
        )
        logger.info("Created project %s in team %s", project["id"], team_id)
        return project

    async def archive_project(self, project_id: str, *, actor: str, archived: bool = True) -> dict[str, Any]:
        rows = (await self.gateway.update("projects", {"is_archived": archived}, filters=[eq("id", project_id)])).unwrap()
        if not rows:
            raise KeyError(project_id)
        project = rows[0]
        if archived:
            await self._log(
                project["team_id"],
                actor,
                ActivityAction.PROJECT_ARCHIVED,
                target_type="project",
                target_id=project_id,
                details={"project_name": project["name"]},
            )
        return project

    async def delete_project(self, project_id: str, *, actor: str) -> None:
        """Soft-delete a project. Team owners and admins may delete any project, members only their own."""
        rows = (
            await self.gateway.select("projects", filters=[eq("id", project_id), is_null("deleted_at")], limit=1)
        ).unwrap()
        if not rows:
            raise KeyError(project_id)
        project = rows[0]
        role = await self._role(project["team_id"], actor)
        if role is None or (role is TeamRole.MEMBER and project["owner_id"] != actor):
            msg = "Only the project owner or a team owner or admin can delete a project"
            raise PermissionError(msg)
        (await self.gateway.update("projects", {"deleted_at": now_iso()}, filters=[eq("id", project_id)])).unwrap()
        await self._log(
            project["team_id"],
            actor,
            ActivityAction.PROJECT_DELETED,
            target_type="project",
            target_id=project_id,
            details={"project_name": project["name"]},
        )
        logger.info("Deleted project %s", project_id)


class ProfileService:
    def __init__(
        self,
        gateway: RecordGateway,
        storage: LocalObjectStorage,
        *,
        limits: Limits = DEFAULT_LIMITS,
    ) -> None:
        self.gateway = gateway
        self.storage = storage
        self.limits = limits

    async def create_user(self, email: str, name: str) -> dict[str, Any]:
        name, err = validate_text(name, name="name", max_length=self.limits.user_name_max)
        if err:
            raise ValueError(err)
        if not isinstance(email, str) or "@" not in email:
            msg = f"Invalid email: {email!r}"
            raise ValueError(msg)
        return (await self.gateway.insert("users", {"email": email.strip().lower(), "name": name.strip()})).unwrap()

    async def set_avatar(self, user_id: str, data: bytes, *, extension: str) -> str:
        """Upload *data* as the user's avatar and return its public URL."""
        ext = extension.lower().lstrip(".")
        if ext not in AVATAR_EXTENSIONS:
            msg = f"Unsupported image type: {extension!r}"
            raise ValueError(msg)
        path = f"avatars/{user_id}.{ext}"
        (await self.storage.upload(path, data, overwrite=True)).unwrap()
        url = self.storage.get_public_url(path)
        rows = (await self.gateway.update("users", {"profile_image": url}, filters=[eq("id", user_id)])).unwrap()
        if not rows:
            raise KeyError(user_id)
        return url
