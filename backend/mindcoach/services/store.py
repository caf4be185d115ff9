"""Persistent store — chats, projects, roadmaps and resources as JSON collections.

Three collections live under fixed keys in a key-value backend:
  - chats:    general chats (outside projects), most recently updated first
  - projects: projects, each embedding its own chats and resources
  - context:  a single UserContext record

Every write is a full read-modify-write of one collection. There is no locking:
the store assumes a single writer. Reads fail closed — a malformed stored value
yields an empty collection instead of an exception.
"""

import json
import logging
import math
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from pydantic import ValidationError

from mindcoach.config import settings
from mindcoach.models.kv_entry import KVEntry
from mindcoach.schemas.store import (
    Chat,
    Milestone,
    Project,
    ProjectAnalytics,
    Resource,
    ResumePrompt,
    Roadmap,
    UserContext,
)

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Key-value backends
# ─────────────────────────────────────────────────────────────────────────────

class KeyValueBackend(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryKeyValueBackend:
    """Dict-backed backend, used in tests and for ephemeral sessions."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self.data: dict[str, str] = dict(initial or {})
        self.writes = 0

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.writes += 1
        self.data[key] = value


class SqlKeyValueBackend:
    """Backend storing each collection as one row of the kv_entries table."""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        db = self._session_factory()
        try:
            entry = db.get(KVEntry, key)
            return entry.value if entry else None
        finally:
            db.close()

    def set(self, key: str, value: str) -> None:
        db = self._session_factory()
        try:
            entry = db.get(KVEntry, key)
            if entry:
                entry.value = value
            else:
                db.add(KVEntry(key=key, value=value))
            db.commit()
        finally:
            db.close()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def compute_progress(roadmap: Optional[Roadmap]) -> int:
    """Percentage of completed milestones; 0 for an empty roadmap."""
    if not roadmap or not roadmap.milestones:
        return 0
    completed = sum(1 for m in roadmap.milestones if m.completed)
    # half-up, so 12.5 rounds to 13
    return math.floor(100 * completed / len(roadmap.milestones) + 0.5)


class Store:
    """Repository over the three JSON collections."""

    def __init__(
        self,
        backend: KeyValueBackend,
        clock: Callable[[], datetime] = _utc_now,
        chats_key: str = settings.STORE_CHATS_KEY,
        projects_key: str = settings.STORE_PROJECTS_KEY,
        context_key: str = settings.STORE_CONTEXT_KEY,
    ):
        self.backend = backend
        self._clock = clock
        self.chats_key = chats_key
        self.projects_key = projects_key
        self.context_key = context_key

    def _now(self) -> str:
        return self._clock().isoformat()

    # ── Raw collection access ────────────────────────────────────────────────

    def _read_list(self, key: str) -> list[dict]:
        raw = self.backend.get(key)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Store value under '{key}' is not valid JSON; treating as empty")
            return []
        if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
            logger.warning(f"Store value under '{key}' is not a list of records; treating as empty")
            return []
        return data

    def _write_chats(self, chats: list[Chat]) -> None:
        self.backend.set(self.chats_key, json.dumps([c.to_json_dict() for c in chats]))

    def _write_projects(self, projects: list[Project]) -> None:
        self.backend.set(self.projects_key, json.dumps([p.to_json_dict() for p in projects]))

    # ===== GENERAL CHATS (outside projects) =====

    def get_chats(self) -> list[Chat]:
        records = self._read_list(self.chats_key)
        try:
            return [Chat.model_validate(r) for r in records]
        except ValidationError as e:
            logger.warning(f"Stored chats failed validation; treating as empty: {e}")
            return []

    def get_chat(self, chat_id: str) -> Optional[Chat]:
        return next((c for c in self.get_chats() if c.id == chat_id), None)

    def save_chat(self, chat: Chat) -> Chat:
        """Insert or update a general chat; it moves to the front of the list."""
        chats = self.get_chats()
        existing = next((i for i, c in enumerate(chats) if c.id == chat.id), None)
        if existing is not None:
            chat = chat.model_copy(update={"updated_at": self._now()})
            chats.pop(existing)
        chats.insert(0, chat)
        self._write_chats(chats)
        self.update_context(last_activity=self._now(), total_chats=len(chats))
        return chat

    def delete_chat(self, chat_id: str) -> None:
        chats = [c for c in self.get_chats() if c.id != chat_id]
        self._write_chats(chats)

    # ===== PROJECTS =====

    def _migrate_project_record(self, record: dict) -> bool:
        """Backfill fields missing from older records. Returns True if changed."""
        changed = False
        if "chats" not in record or record["chats"] is None:
            record["chats"] = []
            changed = True
        if "resources" not in record or record["resources"] is None:
            record["resources"] = []
            changed = True
        if not record.get("createdAt"):
            record["createdAt"] = self._now()
            changed = True
        if not record.get("updatedAt"):
            record["updatedAt"] = record["createdAt"]
            changed = True
        return changed

    def get_projects(self) -> list[Project]:
        records = self._read_list(self.projects_key)
        migrated = [self._migrate_project_record(r) for r in records]
        try:
            projects = [Project.model_validate(r) for r in records]
        except ValidationError as e:
            logger.warning(f"Stored projects failed validation; treating as empty: {e}")
            return []
        if any(migrated):
            logger.info(f"Migrated {sum(migrated)} legacy project record(s)")
            self._write_projects(projects)
        return projects

    def get_project(self, project_id: str) -> Optional[Project]:
        return next((p for p in self.get_projects() if p.id == project_id), None)

    def create_project(
        self,
        title: str,
        description: str = "",
        level: str = "beginner",
        roadmap: Optional[Roadmap] = None,
        resources: Optional[list[Resource]] = None,
        chats: Optional[list[Chat]] = None,
        learning_style: Optional[str] = None,
    ) -> Project:
        now = self._now()
        project = Project(
            id=f"project-{uuid.uuid4()}",
            title=title,
            description=description,
            level=level,
            roadmap=roadmap,
            resources=resources or [],
            chats=chats or [],
            created_at=now,
            updated_at=now,
            progress=0,
            learning_style=learning_style,
        )
        return self.save_project(project)

    def save_project(self, project: Project) -> Project:
        projects = self.get_projects()
        project = project.model_copy(update={"updated_at": self._now()})
        index = next((i for i, p in enumerate(projects) if p.id == project.id), None)
        if index is not None:
            projects[index] = project
        else:
            projects.insert(0, project)
        self._write_projects(projects)
        self.update_context(last_activity=self._now(), total_projects=len(projects))
        return project

    def delete_project(self, project_id: str) -> None:
        projects = [p for p in self.get_projects() if p.id != project_id]
        self._write_projects(projects)

    # ===== PROJECT CHATS =====

    def get_project_chats(self, project_id: str) -> list[Chat]:
        project = self.get_project(project_id)
        return project.chats if project else []

    def get_project_chat(self, project_id: str, chat_id: str) -> Optional[Chat]:
        return next((c for c in self.get_project_chats(project_id) if c.id == chat_id), None)

    def save_project_chat(self, project_id: str, chat: Chat) -> Optional[Chat]:
        project = self.get_project(project_id)
        if not project:
            return None

        chat = chat.model_copy(update={"project_id": project_id, "updated_at": self._now()})
        index = next((i for i, c in enumerate(project.chats) if c.id == chat.id), None)
        if index is not None:
            project.chats[index] = chat
        else:
            project.chats.insert(0, chat)

        self.save_project(project)
        return chat

    def delete_project_chat(self, project_id: str, chat_id: str) -> None:
        project = self.get_project(project_id)
        if not project:
            return
        project.chats = [c for c in project.chats if c.id != chat_id]
        self.save_project(project)

    def prune_stale_chats(self, project_id: str, now: Optional[datetime] = None) -> int:
        """Delete empty project chats older than the staleness window."""
        project = self.get_project(project_id)
        if not project:
            return 0
        now = now or self._clock()
        cutoff = now - timedelta(minutes=settings.CHAT_STALENESS_MINUTES)

        def _stale(chat: Chat) -> bool:
            created = _parse_timestamp(chat.created_at)
            return not chat.messages and created is not None and created < cutoff

        stale_ids = {c.id for c in project.chats if _stale(c)}
        if stale_ids:
            project.chats = [c for c in project.chats if c.id not in stale_ids]
            self.save_project(project)
        return len(stale_ids)

    # ===== ROADMAP =====

    def update_roadmap(self, project_id: str, roadmap: Roadmap) -> Optional[Project]:
        """Replace the roadmap wholesale and recompute project progress."""
        project = self.get_project(project_id)
        if not project:
            return None

        roadmap = roadmap.model_copy(update={"last_updated": self._now()})
        project.roadmap = roadmap
        project.progress = compute_progress(roadmap)
        return self.save_project(project)

    def update_milestone(self, project_id: str, milestone_id: str, updates: dict) -> Optional[Project]:
        project = self.get_project(project_id)
        if not project or not project.roadmap:
            return None

        milestones = project.roadmap.milestones
        index = next((i for i, m in enumerate(milestones) if m.id == milestone_id), None)
        if index is None:
            return None

        milestones[index] = Milestone.model_validate({**milestones[index].model_dump(), **updates})
        return self.update_roadmap(project_id, project.roadmap)

    # ===== RESOURCES =====

    def add_resource(self, project_id: str, resource: Resource) -> Optional[Resource]:
        project = self.get_project(project_id)
        if not project:
            return None

        resource = resource.model_copy(update={
            "id": resource.id or f"resource-{uuid.uuid4()}",
            "created_at": self._now(),
        })
        project.resources.append(resource)
        self.save_project(project)
        return resource

    def delete_resource(self, project_id: str, resource_id: str) -> None:
        project = self.get_project(project_id)
        if not project:
            return
        project.resources = [r for r in project.resources if r.id != resource_id]
        self.save_project(project)

    # ===== USER CONTEXT =====

    def get_context(self) -> UserContext:
        raw = self.backend.get(self.context_key)
        if raw:
            try:
                return UserContext.model_validate(json.loads(raw))
            except (json.JSONDecodeError, ValidationError):
                logger.warning("Stored user context is malformed; using defaults")
        return UserContext(last_activity=self._now())

    def update_context(self, **updates) -> UserContext:
        context = self.get_context().model_copy(update=updates)
        self.backend.set(self.context_key, json.dumps(context.to_json_dict()))
        return context

    # ===== SMART FEATURES =====

    def detect_weak_areas(self, project_id: str) -> list[str]:
        """Union of chat weak areas and weak areas of struggling milestones."""
        project = self.get_project(project_id)
        if not project:
            return []

        weak_areas: dict[str, None] = {}
        for chat in project.chats:
            for area in chat.weak_areas or []:
                weak_areas.setdefault(area, None)

        if project.roadmap:
            for milestone in project.roadmap.milestones:
                if milestone.status == "struggling":
                    for area in milestone.weak_areas or []:
                        weak_areas.setdefault(area, None)

        return list(weak_areas)

    def get_resume_prompt(self) -> Optional[ResumePrompt]:
        context = self.get_context()

        if context.current_project and context.current_chat:
            project = self.get_project(context.current_project)
            chat = self.get_project_chat(context.current_project, context.current_chat) if project else None
            if project and chat and chat.messages:
                return ResumePrompt(
                    type="project",
                    project_id=project.id,
                    project_title=project.title,
                    chat_id=chat.id,
                    chat_title=chat.title,
                    last_message=chat.messages[-1].content[:100],
                )

        chats = self.get_chats()
        if chats:
            latest = max(chats, key=lambda c: c.updated_at)
            if latest.messages:
                return ResumePrompt(
                    type="chat",
                    chat_id=latest.id,
                    chat_title=latest.title,
                    last_message=latest.messages[-1].content[:100],
                )

        return None

    def get_project_analytics(self, project_id: str) -> Optional[ProjectAnalytics]:
        project = self.get_project(project_id)
        if not project:
            return None

        milestones = project.roadmap.milestones if project.roadmap else []
        return ProjectAnalytics(
            total_chats=len(project.chats),
            total_messages=sum(len(c.messages) for c in project.chats),
            completed_milestones=sum(1 for m in milestones if m.completed),
            total_milestones=len(milestones),
            weak_areas=self.detect_weak_areas(project_id),
            resources={
                "total": len(project.resources),
                "ai": sum(1 for r in project.resources if r.added_by == "ai"),
                "user": sum(1 for r in project.resources if r.added_by == "user"),
            },
        )
