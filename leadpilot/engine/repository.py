"""
Lead Repository - uniform read/write of leads, tasks and the action log.

Two backends, chosen once at startup by get_repository():
  LocalRepository     JSON documents in a single file (data/store.json)
  PostgresRepository  remote document store, one JSONB table per collection

Both expose the same coroutine interface so handlers never branch on the backend.
"""

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from psycopg2.extras import Json

from leadpilot.db.connection import get_db_cursor
from leadpilot.models import ActionLog, Lead, Task

logger = logging.getLogger(__name__)

_MAX_LOGS = 50

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS leads (
        id TEXT PRIMARY KEY,
        doc JSONB NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
    CREATE TABLE IF NOT EXISTS tasks (
        id TEXT PRIMARY KEY,
        doc JSONB NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
    CREATE TABLE IF NOT EXISTS action_logs (
        id TEXT PRIMARY KEY,
        doc JSONB NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
"""


class RepositoryError(Exception):
    """Raised when the backing store cannot be read or written."""


class Repository:
    """Interface shared by all storage backends."""

    async def get_leads(self) -> List[Lead]:
        raise NotImplementedError

    async def create_lead(self, lead: Lead) -> Lead:
        raise NotImplementedError

    async def update_lead(self, lead: Lead) -> None:
        raise NotImplementedError

    async def get_tasks(self) -> List[Task]:
        raise NotImplementedError

    async def create_task(self, task: Task) -> Task:
        raise NotImplementedError

    async def update_task(self, task: Task) -> None:
        raise NotImplementedError

    async def log_action(self, action: str, detail: str, severity: str = 'info') -> ActionLog:
        raise NotImplementedError

    async def get_logs(self) -> List[ActionLog]:
        raise NotImplementedError

    async def get_lead(self, lead_id: str) -> Optional[Lead]:
        for lead in await self.get_leads():
            if lead.id == lead_id:
                return lead
        return None


# =============================================================================
# LOCAL (JSON FILE)
# =============================================================================

class LocalRepository(Repository):
    """
    Stores everything in one JSON file. Newest records first, like the
    dashboard lists them. With path=None the store lives in memory only.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self._memory: Dict[str, list] = {'leads': [], 'tasks': [], 'logs': []}

    def _load(self) -> Dict[str, list]:
        if self.path is None:
            return self._memory
        if not self.path.exists():
            return {'leads': [], 'tasks': [], 'logs': []}
        try:
            data = json.loads(self.path.read_text(encoding='utf-8'))
        except (OSError, ValueError) as e:
            logger.error(f"Could not read store {self.path}: {e}")
            raise RepositoryError(f"Could not read store {self.path}: {e}") from e
        for key in ('leads', 'tasks', 'logs'):
            data.setdefault(key, [])
        return data

    def _save(self, data: Dict[str, list]):
        if self.path is None:
            self._memory = data
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix('.tmp')
            tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False, default=str), encoding='utf-8')
            tmp.replace(self.path)
        except OSError as e:
            logger.error(f"Could not write store {self.path}: {e}")
            raise RepositoryError(f"Could not write store {self.path}: {e}") from e

    async def get_leads(self) -> List[Lead]:
        return [Lead.from_dict(d) for d in self._load()['leads']]

    async def create_lead(self, lead: Lead) -> Lead:
        data = self._load()
        if not lead.created_at:
            lead.created_at = datetime.now().isoformat(timespec='seconds')
        data['leads'].insert(0, lead.to_dict())
        self._save(data)
        logger.info(f"Created lead {lead.id}: {lead.company_name}")
        return lead

    async def update_lead(self, lead: Lead) -> None:
        data = self._load()
        for i, doc in enumerate(data['leads']):
            if doc.get('id') == lead.id:
                data['leads'][i] = lead.to_dict()
                self._save(data)
                logger.debug(f"Updated lead {lead.id}: status={lead.lead_status}")
                return
        raise RepositoryError(f"Lead {lead.id} not found")

    async def get_tasks(self) -> List[Task]:
        return [Task.from_dict(d) for d in self._load()['tasks']]

    async def create_task(self, task: Task) -> Task:
        data = self._load()
        data['tasks'].insert(0, task.to_dict())
        self._save(data)
        logger.info(f"Created task {task.id} for {task.company_name}: {task.task_type}")
        return task

    async def update_task(self, task: Task) -> None:
        data = self._load()
        for i, doc in enumerate(data['tasks']):
            if doc.get('id') == task.id:
                data['tasks'][i] = task.to_dict()
                self._save(data)
                return
        raise RepositoryError(f"Task {task.id} not found")

    async def log_action(self, action: str, detail: str, severity: str = 'info') -> ActionLog:
        entry = ActionLog(action=action, detail=detail, severity=severity)
        data = self._load()
        data['logs'] = [entry.to_dict()] + data['logs'][:_MAX_LOGS - 1]
        self._save(data)
        return entry

    async def get_logs(self) -> List[ActionLog]:
        return [ActionLog(**d) for d in self._load()['logs']]


# =============================================================================
# REMOTE (POSTGRES JSONB)
# =============================================================================

class PostgresRepository(Repository):
    """
    Remote document store. Each record is one JSONB document keyed by id.
    psycopg2 is blocking, so every call runs in a worker thread.
    """

    def __init__(self, dsn: str):
        self.dsn = dsn

    async def _run(self, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except RepositoryError:
            raise
        except Exception as e:
            logger.error(f"Remote store error in {fn.__name__}: {e}")
            raise RepositoryError(f"Remote store error: {e}") from e

    def ensure_schema(self):
        with get_db_cursor(self.dsn) as cur:
            cur.execute(_SCHEMA)
        logger.info("Remote store schema verified")

    def _select_docs(self, table: str) -> List[Dict[str, Any]]:
        # table names come from the fixed set below, never from input
        with get_db_cursor(self.dsn) as cur:
            cur.execute(f"SELECT doc FROM {table} ORDER BY created_at DESC")
            return [row['doc'] for row in cur.fetchall()]

    def _insert_doc(self, table: str, doc_id: str, doc: Dict[str, Any]):
        with get_db_cursor(self.dsn) as cur:
            cur.execute(f"INSERT INTO {table} (id, doc) VALUES (%s, %s)", (doc_id, Json(doc, dumps=_dumps)))

    def _update_doc(self, table: str, doc_id: str, doc: Dict[str, Any]):
        with get_db_cursor(self.dsn) as cur:
            cur.execute(
                f"UPDATE {table} SET doc = %s, updated_at = NOW() WHERE id = %s",
                (Json(doc, dumps=_dumps), doc_id),
            )
            if cur.rowcount == 0:
                raise RepositoryError(f"{table} record {doc_id} not found")

    async def get_leads(self) -> List[Lead]:
        return [Lead.from_dict(d) for d in await self._run(self._select_docs, 'leads')]

    async def create_lead(self, lead: Lead) -> Lead:
        if not lead.created_at:
            lead.created_at = datetime.now().isoformat(timespec='seconds')
        await self._run(self._insert_doc, 'leads', lead.id, lead.to_dict())
        logger.info(f"Created lead {lead.id}: {lead.company_name}")
        return lead

    async def update_lead(self, lead: Lead) -> None:
        await self._run(self._update_doc, 'leads', lead.id, lead.to_dict())

    async def get_tasks(self) -> List[Task]:
        return [Task.from_dict(d) for d in await self._run(self._select_docs, 'tasks')]

    async def create_task(self, task: Task) -> Task:
        await self._run(self._insert_doc, 'tasks', task.id, task.to_dict())
        logger.info(f"Created task {task.id} for {task.company_name}: {task.task_type}")
        return task

    async def update_task(self, task: Task) -> None:
        await self._run(self._update_doc, 'tasks', task.id, task.to_dict())

    async def log_action(self, action: str, detail: str, severity: str = 'info') -> ActionLog:
        entry = ActionLog(action=action, detail=detail, severity=severity)
        await self._run(self._insert_doc, 'action_logs', entry.id, entry.to_dict())
        return entry

    async def get_logs(self) -> List[ActionLog]:
        docs = await self._run(self._select_docs, 'action_logs')
        return [ActionLog(**d) for d in docs[:_MAX_LOGS]]


def _dumps(obj) -> str:
    return json.dumps(obj, ensure_ascii=False, default=str)


def get_repository(cfg) -> Repository:
    """Pick the storage backend from configuration. Called once at startup."""
    if cfg.STORE_BACKEND == 'postgres':
        logger.info("Using remote Postgres store")
        repo = PostgresRepository(cfg.DATABASE_URL)
        repo.ensure_schema()
        return repo
    path = Path(cfg.DATA_DIR) / 'store.json'
    logger.info(f"Using local store at {path}")
    return LocalRepository(path)
