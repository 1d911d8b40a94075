#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# FocusFlow Database - focus history, pet state and linked tasks
import sqlite3
import logging
import threading
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .progression import initial_pet
from .types import FocusRecord, PetState, Task, TimerMode, get_db_path

DATABASE_VERSION = '1.0.0'
CHART_DAYS = 7


class BaseDB:
    """sqlite connection cached per instance"""
    def __init__(self, db_path: Path, logger: logging.Logger):
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.logger = logger
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    def _get_conn(self) -> sqlite3.Connection:
        with self._lock:
            if self._conn is None:
                self._conn = sqlite3.connect(
                    str(self.db_path), timeout=10.0, check_same_thread=False
                )
                self._conn.row_factory = sqlite3.Row
                self._conn.execute("PRAGMA journal_mode=WAL;")
                self._conn.execute("PRAGMA busy_timeout=5000;")
                self._conn.execute("PRAGMA synchronous=NORMAL;")
            return self._conn

    def close(self):
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None


class FocusHistoryDB(BaseDB):
    """Receives what a finished session produced; the engine never writes here itself."""

    def __init__(self, db_path: Optional[Union[str, Path]] = None, logger: Optional[logging.Logger] = None):
        super().__init__(Path(db_path) if db_path else get_db_path(), logger or logging.getLogger(__name__))
        self.init_tables()

    def init_tables(self):
        conn = self._get_conn()
        with self._lock:
            cursor = conn.cursor()
            cursor.execute('''CREATE TABLE IF NOT EXISTS focus_records (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                date TEXT NOT NULL, duration_minutes INTEGER NOT NULL,
                mode TEXT NOT NULL, created_at TEXT NOT NULL
            )''')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_focus_date ON focus_records(date)')
            cursor.execute('''CREATE TABLE IF NOT EXISTS pet_state (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                level INTEGER NOT NULL, current_exp REAL NOT NULL, max_exp INTEGER NOT NULL,
                happiness INTEGER NOT NULL, last_daily_activity_date TEXT,
                streak_count INTEGER DEFAULT 0, updated_at TEXT
            )''')
            cursor.execute('''CREATE TABLE IF NOT EXISTS tasks (
                id TEXT PRIMARY KEY, title TEXT NOT NULL,
                duration_minutes INTEGER DEFAULT 25, pomodoro_count INTEGER DEFAULT 0,
                completed INTEGER DEFAULT 0
            )''')
            conn.commit()

    # ==================== Focus records ====================
    def add_focus_record(self, record: FocusRecord) -> bool:
        if record.duration_minutes <= 0:
            self.logger.debug(f"Skipped empty focus record for {record.date}")
            return False
        conn = self._get_conn()
        with self._lock:
            conn.execute(
                'INSERT INTO focus_records (date, duration_minutes, mode, created_at) VALUES (?, ?, ?, ?)',
                (record.date, record.duration_minutes, record.mode.value, datetime.now().isoformat(timespec='seconds')),
            )
            conn.commit()
        self.logger.info(f"Focus record: {record.date} {record.duration_minutes}m ({record.mode.value})")
        return True

    def records_for_day(self, day: str) -> List[FocusRecord]:
        conn = self._get_conn()
        with self._lock:
            rows = conn.execute(
                'SELECT date, duration_minutes, mode FROM focus_records WHERE date = ? ORDER BY id', (day,)
            ).fetchall()
        return [FocusRecord(r['date'], r['duration_minutes'], TimerMode(r['mode'])) for r in rows]

    def minutes_for_day(self, day: str) -> int:
        conn = self._get_conn()
        with self._lock:
            row = conn.execute(
                'SELECT COALESCE(SUM(duration_minutes), 0) AS total FROM focus_records WHERE date = ?', (day,)
            ).fetchone()
        return int(row['total'])

    def daily_minutes(self, end_day: date, days: int = CHART_DAYS) -> List[Tuple[str, int]]:
        """Minutes per day for the ``days`` days ending at ``end_day``, oldest first, zero-filled."""
        start = end_day - timedelta(days=days - 1)
        conn = self._get_conn()
        with self._lock:
            rows = conn.execute(
                'SELECT date, SUM(duration_minutes) AS total FROM focus_records WHERE date BETWEEN ? AND ? GROUP BY date',
                (start.isoformat(), end_day.isoformat()),
            ).fetchall()
        totals: Dict[str, int] = {r['date']: int(r['total']) for r in rows}
        keys = [(start + timedelta(days=i)).isoformat() for i in range(days)]
        return [(k, totals.get(k, 0)) for k in keys]

    # ==================== Pet ====================
    def load_pet(self) -> PetState:
        conn = self._get_conn()
        with self._lock:
            row = conn.execute('SELECT * FROM pet_state WHERE id = 1').fetchone()
        if row is None:
            return initial_pet()
        return PetState.from_dict(dict(row))

    def save_pet(self, pet: PetState):
        conn = self._get_conn()
        with self._lock:
            conn.execute('''INSERT OR REPLACE INTO pet_state
                (id, level, current_exp, max_exp, happiness, last_daily_activity_date, streak_count, updated_at)
                VALUES (1, ?, ?, ?, ?, ?, ?, ?)''',
                (pet.level, pet.current_exp, pet.max_exp, pet.happiness, pet.last_daily_activity_date,
                 pet.streak_count, datetime.now().isoformat(timespec='seconds')))
            conn.commit()

    # ==================== Tasks ====================
    def upsert_task(self, task: Task):
        conn = self._get_conn()
        with self._lock:
            conn.execute('INSERT OR REPLACE INTO tasks (id, title, duration_minutes, pomodoro_count, completed) VALUES (?, ?, ?, ?, ?)',
                         (task.id, task.title, task.duration_minutes, task.pomodoro_count, int(task.completed)))
            conn.commit()

    def get_task(self, task_id: str) -> Optional[Task]:
        conn = self._get_conn()
        with self._lock:
            row = conn.execute('SELECT * FROM tasks WHERE id = ?', (task_id,)).fetchone()
        if row is None:
            return None
        return Task(row['id'], row['title'], row['duration_minutes'], row['pomodoro_count'], bool(row['completed']))

    def mark_task_done(self, task_id: str) -> bool:
        conn = self._get_conn()
        with self._lock:
            cur = conn.execute('UPDATE tasks SET completed = 1 WHERE id = ?', (task_id,))
            conn.commit()
        if cur.rowcount == 0:
            self.logger.warning(f"Task not found for completion: {task_id}")
            return False
        self.logger.info(f"Task completed: {task_id}")
        return True
