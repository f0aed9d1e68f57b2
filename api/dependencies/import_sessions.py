from fastapi import HTTPException
from typing import Optional
from config import settings
from core.imports.session import ImportSession, ImportSessionManager


# Live sessions are held in memory - initialized lazily
_session_manager: Optional[ImportSessionManager] = None


def get_session_manager() -> ImportSessionManager:
    """Get the import session registry"""
    global _session_manager
    if _session_manager is None:
        _session_manager = ImportSessionManager(ttl_seconds=settings.import_session_ttl_minutes * 60)
    return _session_manager


def get_import_session(session_id: str) -> ImportSession:
    """Look up a live import session or fail with 404"""
    session = get_session_manager().get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Import session '{session_id}' not found")
    return session
