"""
PostgresDocumentStore - документы в одной JSONB таблице

Принципы:
- Одна таблица documents(collection, doc_id, data JSONB)
- Счетчики меняются одним UPDATE через jsonb_set, без read-modify-write
- Сортировка query только по числовым полям (usage_count)
"""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from .service import DatabaseService
from .store import DocumentStore

logger = logging.getLogger(__name__)


class PostgresDocumentStore(DocumentStore):
    """DocumentStore поверх asyncpg"""

    def __init__(self, db_service: DatabaseService):
        self.db = db_service

    async def create_tables(self):
        """Создать таблицу документов и индекс поиска артефактов"""

        documents_sql = """
        CREATE TABLE IF NOT EXISTS documents (
            collection VARCHAR(64) NOT NULL,
            doc_id VARCHAR(256) NOT NULL,
            data JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMP DEFAULT NOW(),
            updated_at TIMESTAMP DEFAULT NOW(),
            PRIMARY KEY (collection, doc_id)
        )
        """

        # Поиск артефактов по (signature, content_type, variant)
        artifact_index_sql = """
        CREATE INDEX IF NOT EXISTS idx_documents_artifact_key
        ON documents (collection, (data->>'signature'), (data->>'content_type'), (data->>'variant'))
        """

        async with self.db.transaction() as conn:
            await conn.execute(documents_sql)
            await conn.execute(artifact_index_sql)

        logger.info("✅ Document tables ready")

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        async with self.db.get_connection() as conn:
            raw = await conn.fetchval(
                "SELECT data FROM documents WHERE collection = $1 AND doc_id = $2",
                collection, doc_id
            )
        return _decode(raw) if raw is not None else None

    async def set(self, collection: str, doc_id: str, data: Mapping[str, Any], merge: bool = False) -> None:
        update = "documents.data || EXCLUDED.data" if merge else "EXCLUDED.data"
        sql = f"""
        INSERT INTO documents (collection, doc_id, data)
        VALUES ($1, $2, $3::jsonb)
        ON CONFLICT (collection, doc_id)
        DO UPDATE SET data = {update}, updated_at = NOW()
        """
        async with self.db.get_connection() as conn:
            await conn.execute(sql, collection, doc_id, json.dumps(dict(data)))

    async def query(
        self,
        collection: str,
        filters: Mapping[str, Any],
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        args: List[Any] = [collection]
        clauses = ["collection = $1"]

        for field, value in filters.items():
            args.extend([field, json.dumps(value)])
            clauses.append(f"data -> ${len(args) - 1}::text = ${len(args)}::jsonb")

        sql = f"SELECT doc_id, data FROM documents WHERE {' AND '.join(clauses)}"

        if order_by:
            args.append(order_by)
            direction = "DESC" if descending else "ASC"
            sql += f" ORDER BY (data->>${len(args)}::text)::numeric {direction} NULLS LAST, created_at"

        if limit is not None:
            args.append(limit)
            sql += f" LIMIT ${len(args)}"

        async with self.db.get_connection() as conn:
            rows = await conn.fetch(sql, *args)

        return [{**_decode(row["data"]), "id": row["doc_id"]} for row in rows]

    async def increment(self, collection: str, doc_id: str, amounts: Mapping[str, float]) -> Dict[str, Any]:
        async with self.db.transaction() as conn:
            await conn.execute(
                """
                INSERT INTO documents (collection, doc_id, data) VALUES ($1, $2, '{}'::jsonb)
                ON CONFLICT (collection, doc_id) DO NOTHING
                """,
                collection, doc_id
            )
            for field, amount in amounts.items():
                await conn.execute(
                    """
                    UPDATE documents
                    SET data = jsonb_set(
                            data,
                            ARRAY[$3::text],
                            to_jsonb(COALESCE((data->>$3::text)::numeric, 0) + $4::numeric)
                        ),
                        updated_at = NOW()
                    WHERE collection = $1 AND doc_id = $2
                    """,
                    collection, doc_id, field, amount
                )
            raw = await conn.fetchval(
                "SELECT data FROM documents WHERE collection = $1 AND doc_id = $2",
                collection, doc_id
            )
        return _decode(raw)

    async def append_unique(self, collection: str, doc_id: str, field: str, value: Any) -> None:
        wrapped = json.dumps([value])
        async with self.db.transaction() as conn:
            await conn.execute(
                """
                INSERT INTO documents (collection, doc_id, data) VALUES ($1, $2, '{}'::jsonb)
                ON CONFLICT (collection, doc_id) DO NOTHING
                """,
                collection, doc_id
            )
            await conn.execute(
                """
                UPDATE documents
                SET data = jsonb_set(data, ARRAY[$3::text], COALESCE(data->$3::text, '[]'::jsonb) || $4::jsonb),
                    updated_at = NOW()
                WHERE collection = $1 AND doc_id = $2
                  AND NOT (COALESCE(data->$3::text, '[]'::jsonb) @> $4::jsonb)
                """,
                collection, doc_id, field, wrapped
            )

    async def close(self) -> None:
        await self.db.close()


def _decode(raw: Any) -> Dict[str, Any]:
    # asyncpg отдает jsonb строкой, если кодек не зарегистрирован
    if isinstance(raw, str):
        return json.loads(raw)
    return dict(raw)
