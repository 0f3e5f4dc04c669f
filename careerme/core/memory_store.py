"""
In-process fallback store used when record store credentials are absent (demo/local mode).
Mirrors the record store's ownership rules closely enough for the wizard to work end to end.
"""

import copy
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class MemoryStore:
    """Thread-safe maps of resumes, list-valued sub-resources, AI texts and print snapshots."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.resumes: Dict[str, Dict[str, Any]] = {}
        self.rows: Dict[str, Dict[str, List[Dict[str, Any]]]] = {
            "education": {},
            "experience": {},
            "work": {},
        }
        self.ai_texts: Dict[str, Dict[str, str]] = {}
        self.prints: Dict[str, Dict[str, Any]] = {}

    # Resumes

    def find_resume(self, resume_id: Optional[str], anon_key: Optional[str]) -> Optional[Dict[str, Any]]:
        with self._lock:
            if resume_id:
                record = self.resumes.get(resume_id)
                if record is None or (record.get("anonKey") and record.get("anonKey") != anon_key):
                    return None
                return copy.deepcopy(record)
            if anon_key:
                for record in self.resumes.values():
                    if record.get("anonKey") == anon_key:
                        return copy.deepcopy(record)
            return None

    def has_resume(self, resume_id: str) -> bool:
        with self._lock:
            return resume_id in self.resumes

    def write_resume(self, record: Dict[str, Any]) -> None:
        with self._lock:
            self.resumes[record["id"]] = copy.deepcopy(record)

    # List-valued rows keyed by owning resume

    def list_rows(self, kind: str, resume_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self.rows[kind].get(resume_id, []))

    def replace_rows(self, kind: str, resume_id: str, items: List[Dict[str, Any]]) -> int:
        with self._lock:
            self.rows[kind][resume_id] = [
                dict(copy.deepcopy(item), id=item.get("id") or f"mem{uuid.uuid4().hex[:14]}")
                for item in items
            ]
            return len(items)

    def upsert_row(self, kind: str, resume_id: str, row_id: Optional[str], fields: Dict[str, Any]) -> str:
        with self._lock:
            rows = self.rows[kind].setdefault(resume_id, [])
            if row_id:
                for row in rows:
                    if row["id"] == row_id:
                        row.update(copy.deepcopy(fields))
                        return row_id
            new_id = row_id or f"mem{uuid.uuid4().hex[:14]}"
            rows.append(dict(copy.deepcopy(fields), id=new_id))
            return new_id

    def row_owner(self, kind: str, row_id: str) -> Optional[str]:
        with self._lock:
            for resume_id, rows in self.rows[kind].items():
                if any(row["id"] == row_id for row in rows):
                    return resume_id
            return None

    def delete_row(self, kind: str, row_id: str) -> bool:
        with self._lock:
            for rows in self.rows[kind].values():
                for index, row in enumerate(rows):
                    if row["id"] == row_id:
                        del rows[index]
                        return True
            return False

    # Self-PR draft/final texts

    def read_ai_text(self, resume_id: str, target: str) -> str:
        with self._lock:
            return self.ai_texts.get(resume_id, {}).get(target, "")

    def write_ai_text(self, resume_id: str, target: str, text: str) -> None:
        with self._lock:
            self.ai_texts.setdefault(resume_id, {})[target] = text

    # Print snapshots

    def save_print(self, snapshot: Dict[str, Any]) -> None:
        with self._lock:
            self.prints[snapshot["id"]] = copy.deepcopy(snapshot)

    def get_print(self, print_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            snapshot = self.prints.get(print_id)
            return copy.deepcopy(snapshot) if snapshot else None

    def clear(self) -> None:
        with self._lock:
            self.resumes.clear()
            for rows in self.rows.values():
                rows.clear()
            self.ai_texts.clear()
            self.prints.clear()


_memory_store = MemoryStore()


def get_memory_store() -> MemoryStore:
    return _memory_store
