from __future__ import annotations

import os
import uuid
from dataclasses import replace
from datetime import UTC, datetime

from supabase import Client

from src.domain.entities.content import PUBLISHED, ContentRecord
from src.infrastructure.database.postgres_client import get_postgres_client

# module-level in-memory store for disabled mode
_MEM_CONTENT: dict[str, ContentRecord] = {}

_BACKLOG_WHERE = "status = %s AND image_url IS NOT NULL AND thumbnail_url IS NULL"


class ContentRepository:
    """Access to the ``articles`` table, limited to what the thumbnail pipeline needs."""

    def __init__(self, client: Client | None) -> None:
        self.client = client
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.use_local_db = os.getenv("USE_LOCAL_DB", "0") == "1"
        self.pg_client = get_postgres_client() if self.use_local_db else None

    @property
    def _in_memory(self) -> bool:
        return not (self.use_local_db and self.pg_client) and (self.disabled or self.client is None)

    def _row_to_entity(self, row: dict) -> ContentRecord:
        created_at = row.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        return ContentRecord(
            id=str(row["id"]),
            title=row.get("title") or "",
            status=row.get("status", "draft"),
            excerpt=row.get("excerpt"),
            image_url=row.get("image_url"),
            thumbnail_url=row.get("thumbnail_url"),
            is_ai_generated_thumbnail=bool(row.get("is_ai_generated_thumbnail", False)),
            ai_thumbnail_model=row.get("ai_thumbnail_model"),
            ai_thumbnail_prompt=row.get("ai_thumbnail_prompt"),
            created_at=created_at,
        )

    def create(
        self,
        title: str,
        *,
        status: str = "draft",
        excerpt: str | None = None,
        image_url: str | None = None,
        thumbnail_url: str | None = None,
        content_id: str | None = None,
    ) -> ContentRecord:
        entity = ContentRecord(
            id=content_id or str(uuid.uuid4()),
            title=title,
            status=status,
            excerpt=excerpt,
            image_url=image_url,
            thumbnail_url=thumbnail_url,
            created_at=datetime.now(UTC),
        )

        if self.use_local_db and self.pg_client:
            self.pg_client.execute(
                """
                INSERT INTO articles (id, title, status, excerpt, image_url, thumbnail_url, created_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                """,
                (entity.id, title, status, excerpt, image_url, thumbnail_url, entity.created_at),
            )
            return entity

        if self._in_memory:
            _MEM_CONTENT[entity.id] = entity
            return entity

        try:  # pragma: no cover - network
            res = (
                self.client.table("articles")
                .insert(
                    {
                        "id": entity.id,
                        "title": title,
                        "status": status,
                        "excerpt": excerpt,
                        "image_url": image_url,
                        "thumbnail_url": thumbnail_url,
                        "created_at": entity.created_at.isoformat(),
                    }
                )
                .execute()
            )
            return self._row_to_entity(res.data[0])
        except Exception as exc:
            raise RuntimeError(f"DB insert article failed: {exc}") from exc

    def get(self, content_id: str) -> ContentRecord | None:
        if self.use_local_db and self.pg_client:
            row = self.pg_client.fetch_one("SELECT * FROM articles WHERE id = %s", (content_id,))
            return self._row_to_entity(row) if row else None

        if self._in_memory:
            return _MEM_CONTENT.get(content_id)

        try:  # pragma: no cover - network
            res = self.client.table("articles").select("*").eq("id", content_id).limit(1).execute()
            rows = res.data or []
            return self._row_to_entity(rows[0]) if rows else None
        except Exception as exc:
            raise RuntimeError(f"DB get article failed: {exc}") from exc

    def list_backlog(self, limit: int) -> list[ContentRecord]:
        """Published articles with a source image and no thumbnail, in no particular order."""
        if self.use_local_db and self.pg_client:
            rows = self.pg_client.fetch_all(
                f"SELECT * FROM articles WHERE {_BACKLOG_WHERE} LIMIT %s", (PUBLISHED, limit)
            )
            return [self._row_to_entity(row) for row in rows]

        if self._in_memory:
            return [record for record in _MEM_CONTENT.values() if record.needs_thumbnail][:limit]

        try:  # pragma: no cover - network
            res = (
                self.client.table("articles")
                .select("*")
                .eq("status", PUBLISHED)
                .not_.is_("image_url", "null")
                .is_("thumbnail_url", "null")
                .limit(limit)
                .execute()
            )
            return [self._row_to_entity(row) for row in res.data or []]
        except Exception as exc:
            raise RuntimeError(f"DB backlog query failed: {exc}") from exc

    def count_backlog(self) -> int:
        if self.use_local_db and self.pg_client:
            row = self.pg_client.fetch_one(f"SELECT COUNT(*) AS count FROM articles WHERE {_BACKLOG_WHERE}", (PUBLISHED,))
            return int(row["count"]) if row else 0

        if self._in_memory:
            return sum(1 for record in _MEM_CONTENT.values() if record.needs_thumbnail)

        try:  # pragma: no cover - network
            res = (
                self.client.table("articles")
                .select("id", count="exact")
                .eq("status", PUBLISHED)
                .not_.is_("image_url", "null")
                .is_("thumbnail_url", "null")
                .execute()
            )
            return int(res.count or 0)
        except Exception as exc:
            raise RuntimeError(f"DB backlog count failed: {exc}") from exc

    def update_thumbnail(
        self,
        content_id: str,
        thumbnail_url: str,
        *,
        ai_model: str | None = None,
        ai_prompt: str | None = None,
    ) -> bool:
        """Set the thumbnail fields. Last write wins, so repeating it is safe.

        AI metadata is written only when ``ai_model`` is given; a plain crop
        touches ``thumbnail_url`` alone.
        """
        fields: dict[str, object] = {"thumbnail_url": thumbnail_url}
        if ai_model is not None:
            fields.update(is_ai_generated_thumbnail=True, ai_thumbnail_model=ai_model, ai_thumbnail_prompt=ai_prompt)

        if self.use_local_db and self.pg_client:
            assignments = ", ".join(f"{column} = %s" for column in fields)
            affected = self.pg_client.execute(
                f"UPDATE articles SET {assignments} WHERE id = %s", (*fields.values(), content_id)
            )
            return affected > 0

        if self._in_memory:
            current = _MEM_CONTENT.get(content_id)
            if current is None:
                return False
            _MEM_CONTENT[content_id] = replace(current, **fields)
            return True

        try:  # pragma: no cover - network
            res = self.client.table("articles").update(fields).eq("id", content_id).execute()
            return bool(res.data)
        except Exception as exc:
            raise RuntimeError(f"DB update article thumbnail failed: {exc}") from exc
