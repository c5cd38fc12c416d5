"""Database repository for activity data."""

from __future__ import annotations

from typing import Any, Iterable

from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from .domain.activity import Activity
from .domain.contracts import ActivityQuery, CreateActivityInput

_ACTIVITY_COLUMNS = """
    activity_id, activity_name, description, image_url, location, address,
    max_participants, current_participants, start_date, end_date, signup_deadline,
    worker_id, target_audience, status, category
"""

# Columns a partial update may touch.
_UPDATABLE_COLUMNS = frozenset(
    {
        "activity_name",
        "description",
        "image_url",
        "location",
        "address",
        "max_participants",
        "current_participants",
        "start_date",
        "end_date",
        "signup_deadline",
        "target_audience",
        "status",
        "category",
    }
)


def _filter_clauses(query: ActivityQuery) -> tuple[list[str], list[Any]]:
    """Translate listing filters into SQL predicates and parameters."""
    clauses: list[str] = []
    params: list[Any] = []
    if query.status:
        clauses.append("LOWER(TRIM(status)) = %s")
        params.append(query.status.strip().lower())
    if query.audience:
        clauses.append("LOWER(TRIM(target_audience)) = %s")
        params.append(query.audience.strip().lower())
    if query.content:
        pattern = f"%{query.content.lower()}%"
        clauses.append(
            "(LOWER(activity_name) LIKE %s OR LOWER(location) LIKE %s OR LOWER(description) LIKE %s)"
        )
        params.extend([pattern, pattern, pattern])
    return clauses, params


class ActivityRepository:
    """Postgres-backed activity persistence."""

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def count_activities(self, query: ActivityQuery) -> int:
        clauses, params = _filter_clauses(query)
        where_sql = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(f"SELECT COUNT(*) FROM activities {where_sql}", params)
                row = cur.fetchone()
        return int(row[0]) if row else 0

    def list_activities(self, query: ActivityQuery, *, offset: int, limit: int) -> list[Activity]:
        """Return one page of activities matching ``query``, newest start date first."""
        clauses, params = _filter_clauses(query)
        where_sql = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        sql = f"""
            SELECT {_ACTIVITY_COLUMNS}
            FROM activities
            {where_sql}
            ORDER BY start_date DESC NULLS LAST, activity_id DESC
            LIMIT %s OFFSET %s
        """
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(sql, [*params, limit, offset])
                rows = cur.fetchall()
        return [self._map_record(row) for row in rows]

    def get_activity(self, activity_id: int) -> Activity | None:
        """Fetch a single activity or return ``None``."""
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"SELECT {_ACTIVITY_COLUMNS} FROM activities WHERE activity_id = %s",
                    (activity_id,),
                )
                row = cur.fetchone()
                if not row:
                    return None
        return self._map_record(row)

    def create_activity(self, payload: CreateActivityInput, *, worker_id: int, status: str) -> Activity:
        """Insert an activity with no participants yet and return the stored row."""
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"""
                    INSERT INTO activities (
                        activity_name, description, image_url, location, address,
                        max_participants, current_participants, start_date, end_date,
                        signup_deadline, worker_id, target_audience, status, category
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, 0, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING {_ACTIVITY_COLUMNS}
                    """,
                    (
                        payload.activity_name,
                        payload.description,
                        payload.image_url,
                        payload.location,
                        payload.address,
                        payload.max_participants,
                        payload.start_date,
                        payload.end_date,
                        payload.signup_deadline,
                        worker_id,
                        payload.target_audience,
                        status,
                        payload.category,
                    ),
                )
                row = cur.fetchone()
                conn.commit()
        return self._map_record(row)

    def update_activity(self, activity_id: int, changes: dict[str, Any]) -> Activity | None:
        """Apply ``changes`` to an activity; returns ``None`` when it does not exist."""
        unknown = set(changes) - _UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"cannot update columns: {', '.join(sorted(unknown))}")
        if not changes:
            return self.get_activity(activity_id)

        assignments = ", ".join(f"{column} = %s" for column in changes)
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"""
                    UPDATE activities
                    SET {assignments}
                    WHERE activity_id = %s
                    RETURNING {_ACTIVITY_COLUMNS}
                    """,
                    [*changes.values(), activity_id],
                )
                row = cur.fetchone()
                conn.commit()
        if not row:
            return None
        return self._map_record(row)

    def delete_activity(self, activity_id: int) -> bool:
        """Delete an activity and report whether a row was removed."""
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM activities WHERE activity_id = %s", (activity_id,))
                deleted = cur.rowcount > 0
                conn.commit()
        return deleted

    def worker_exists(self, worker_id: int) -> bool:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute("SELECT 1 FROM workers WHERE worker_id = %s", (worker_id,))
                return cur.fetchone() is not None

    def get_worker_names(self, worker_ids: Iterable[int]) -> dict[int, str]:
        """Resolve worker display names for the given identifiers in one query."""
        ids = sorted(set(worker_ids))
        if not ids:
            return {}
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    "SELECT worker_id, name FROM workers WHERE worker_id = ANY(%s)",
                    (ids,),
                )
                rows = cur.fetchall()
        return {row[0]: row[1] for row in rows if row[1] is not None}

    def _map_record(self, row: tuple) -> Activity:
        """Convert a raw database tuple into the domain ``Activity`` dataclass."""
        return Activity(
            activity_id=row[0],
            activity_name=row[1],
            description=row[2],
            image_url=row[3],
            location=row[4],
            address=row[5],
            max_participants=row[6],
            current_participants=row[7],
            start_date=row[8],
            end_date=row[9],
            signup_deadline=row[10],
            worker_id=row[11],
            target_audience=row[12],
            status=row[13],
            category=row[14],
        )
