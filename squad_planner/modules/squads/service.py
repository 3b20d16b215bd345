import logging
import secrets
from collections import defaultdict
from typing import Dict, List, Optional

from squad_planner.core.errors import BackendError, Conflict, Forbidden, InvalidReference, NotFound
from squad_planner.core.notifications import SystemMessenger
from squad_planner.database.rows import RowAccessor, first_row, ids_of, rows_of
from squad_planner.modules.auth.schemas import Identity
from squad_planner.modules.sessions.aggregation import build_squad_detail, build_squad_view
from squad_planner.modules.squads.schemas import (
    SquadCreate, SquadDetail, SquadMemberRecord, SquadRecord, SquadUpdate, SquadView,
)

logger = logging.getLogger(__name__)

INVITE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
INVITE_CODE_LENGTH = 6
UNIQUE_VIOLATION = "23505"
MEMBER_COLUMNS = "*, profiles(username, avatar_url, reliability_score)"


def generate_invite_code(length: int = INVITE_CODE_LENGTH) -> str:
    return "".join(secrets.choice(INVITE_ALPHABET) for _ in range(length))


def normalize_invite_code(code: str) -> str:
    return code.strip().upper()


class SquadService:
    def __init__(self, rows: RowAccessor, messenger: Optional[SystemMessenger] = None):
        self.rows = rows
        self.messenger = messenger or SystemMessenger(None)

    def list_squads(self, user_id: str) -> List[SquadView]:
        """Squads the user belongs to, newest first, with live member counts"""
        memberships = rows_of(
            self.rows.select("squad_members", "squad_id", {"user_id": user_id}),
            "list memberships",
        )
        squad_ids = ids_of(memberships, "squad_id")
        if not squad_ids:
            return []

        squads = rows_of(
            self.rows.select("squads", "*", {"id": squad_ids}, order="created_at", desc=True),
            "list squads",
        )

        # One query for every squad's members; on failure fall back to the stored counters
        members_result = self.rows.select("squad_members", "squad_id", {"squad_id": squad_ids})
        members_by_squad: Optional[Dict[str, list]] = None
        if members_result.ok:
            members_by_squad = defaultdict(list)
            for row in members_result.data:
                members_by_squad[row["squad_id"]].append(row)
        else:
            logger.warning(f"Member counts unavailable, using stored counters: {members_result.error.message}")

        views = []
        for row in squads:
            record = SquadRecord(**row)
            members = members_by_squad.get(record.id, []) if members_by_squad is not None else None
            views.append(build_squad_view(record, members))
        views.sort(key=lambda view: view.created_at, reverse=True)
        return views

    def get_squad_record(self, squad_id: str) -> SquadRecord:
        row = first_row(self.rows.single("squads", "*", {"id": squad_id}), "read squad")
        if not row:
            raise NotFound("Squad not found")
        return SquadRecord(**row)

    def get_squad(self, squad_id: str) -> SquadDetail:
        """Squad with its members and their public profile fields"""
        record = self.get_squad_record(squad_id)
        members = rows_of(
            self.rows.select("squad_members", MEMBER_COLUMNS, {"squad_id": squad_id}),
            "list squad members",
        )
        return build_squad_detail(record, [SquadMemberRecord(**m) for m in members])

    def ensure_profile(self, user: Identity) -> dict:
        """Return the caller's profile row, creating a minimal one on first use"""
        profile = first_row(self.rows.single("profiles", "id, username", {"id": user.id}), "read profile")
        if profile:
            return profile
        result = self.rows.insert("profiles", {"id": user.id, "username": user.display_name})
        if result.error and result.error.code != UNIQUE_VIOLATION:
            result.raise_for_error("create profile")
        return {"id": user.id, "username": user.display_name}

    def create_squad(self, squad_data: SquadCreate, user: Identity) -> SquadView:
        self.ensure_profile(user)

        squad_row = None
        for _ in range(3):
            result = self.rows.insert("squads", {
                "name": squad_data.name,
                "game": squad_data.game,
                "description": squad_data.description,
                "owner_id": user.id,
                "invite_code": generate_invite_code(),
            })
            if result.error and result.error.code == UNIQUE_VIOLATION:
                logger.info("Invite code collision, generating a new one")
                continue
            squad_row = first_row(result, "create squad")
            break
        if not squad_row:
            raise BackendError("Could not create the squad")

        member_row = first_row(self.rows.insert("squad_members", {
            "squad_id": squad_row["id"],
            "user_id": user.id,
            "role": "owner",
        }), "add squad owner")

        return build_squad_view(SquadRecord(**squad_row), [member_row or {"user_id": user.id}])

    def join_squad(self, invite_code: str, user: Identity) -> str:
        """Join by invite code; returns the squad id"""
        profile = self.ensure_profile(user)

        squad = first_row(
            self.rows.single("squads", "id", {"invite_code": normalize_invite_code(invite_code)}),
            "find squad by invite code",
        )
        if not squad:
            raise InvalidReference("Invalid invite code")
        squad_id = squad["id"]

        existing = first_row(
            self.rows.single("squad_members", "id", {"squad_id": squad_id, "user_id": user.id}),
            "check membership",
        )
        if existing:
            raise Conflict("You are already a member of this squad")

        result = self.rows.insert("squad_members", {
            "squad_id": squad_id,
            "user_id": user.id,
            "role": "member",
        })
        if result.error and result.error.code == UNIQUE_VIOLATION:
            raise Conflict("You are already a member of this squad")
        result.raise_for_error("join squad")

        self.messenger.member_joined(squad_id, profile.get("username") or user.display_name)
        return squad_id

    def leave_squad(self, squad_id: str, user: Identity) -> None:
        profile = first_row(self.rows.single("profiles", "username", {"id": user.id}), "read profile")
        username = (profile or {}).get("username") or user.display_name

        deleted = rows_of(
            self.rows.delete("squad_members", {"squad_id": squad_id, "user_id": user.id}),
            "leave squad",
        )
        if not deleted:
            raise NotFound("You are not a member of this squad")
        # Only announced once a membership row was actually removed
        self.messenger.member_left(squad_id, username)

    def _require_owner(self, squad_id: str, user: Identity) -> SquadRecord:
        record = self.get_squad_record(squad_id)
        if record.owner_id != user.id:
            raise Forbidden("Only the squad owner can do this")
        return record

    def update_squad(self, squad_id: str, squad_data: SquadUpdate, user: Identity) -> SquadRecord:
        record = self._require_owner(squad_id, user)
        update_data = squad_data.model_dump(exclude_none=True)
        if not update_data:
            return record
        row = first_row(self.rows.update("squads", update_data, {"id": squad_id}), "update squad")
        if not row:
            raise NotFound("Squad not found")
        return SquadRecord(**row)

    def delete_squad(self, squad_id: str, user: Identity) -> None:
        self._require_owner(squad_id, user)
        self.rows.delete("squad_members", {"squad_id": squad_id}).raise_for_error("delete squad members")
        self.rows.delete("squads", {"id": squad_id}).raise_for_error("delete squad")
