"""
HTTP API over the session service
"""

import time
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from .config import AnalysisSettings
from .exceptions import AnalysisCancelled, SessionNotFound, UnknownAnalyzer
from .orchestration.sessions import SessionManager
from .utils.logger import get_logger

logger = get_logger(__name__)

# Shared session manager
_session_manager_instance: Optional[SessionManager] = None


def get_session_manager() -> SessionManager:
    global _session_manager_instance
    if _session_manager_instance is None:
        _session_manager_instance = SessionManager(AnalysisSettings.from_env())
        _session_manager_instance.start_cleanup()
    return _session_manager_instance


def set_session_manager(manager: Optional[SessionManager]):
    """Swap the shared manager (used by tests and embedding applications)"""
    global _session_manager_instance
    _session_manager_instance = manager


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if _session_manager_instance is not None:
        _session_manager_instance.close_all()


app = FastAPI(title="DB Analyser", version="0.1.0", lifespan=lifespan)


# Request Models
class ConnectRequest(BaseModel):
    connection_string: str
    provider_type: Optional[str] = None


class StartAnalysisRequest(BaseModel):
    session_id: str
    analyzers: Optional[List[str]] = None
    force: bool = False


class RunAnalyzerRequest(BaseModel):
    force: bool = False
    database: Optional[str] = None


class DisconnectRequest(BaseModel):
    session_id: str


def _to_http_error(e: Exception) -> HTTPException:
    if isinstance(e, SessionNotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (UnknownAnalyzer, ValueError)):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, AnalysisCancelled):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ConnectionError):
        return HTTPException(status_code=502, detail=str(e))
    logger.error(f"Unhandled API error: {e}")
    return HTTPException(status_code=500, detail=str(e))


@app.get("/api/health")
def health():
    return {"status": "healthy", "timestamp": time.time()}


@app.get("/api/providers")
def providers():
    """List supported database engines"""
    return {"providers": get_session_manager().provider_registry.get_supported_types()}


@app.post("/api/connect")
def connect(req: ConnectRequest):
    """Open a session against a database or a whole server"""
    try:
        result = get_session_manager().connect(req.connection_string, req.provider_type)
        return asdict(result)
    except Exception as e:
        raise _to_http_error(e)


@app.post("/api/analysis/start")
def start_analysis(req: StartAnalysisRequest):
    """Run a list of analyzers (the configured defaults when none are given)"""
    try:
        return get_session_manager().run_analysis(req.session_id, req.analyzers, req.force)
    except Exception as e:
        raise _to_http_error(e)


@app.post("/api/analysis/run/{session_id}/{analyzer}")
def run_analyzer(session_id: str, analyzer: str, req: Optional[RunAnalyzerRequest] = None):
    """Run one analyzer, optionally forced and optionally against a single database"""
    req = req or RunAnalyzerRequest()
    try:
        return get_session_manager().run_analyzer(session_id, analyzer, req.force, req.database)
    except Exception as e:
        raise _to_http_error(e)


@app.get("/api/analysis/{session_id}")
def get_result(session_id: str):
    try:
        result = get_session_manager().get_result(session_id)
    except Exception as e:
        raise _to_http_error(e)
    if result is None:
        raise HTTPException(status_code=404, detail=f"No analysis has run for session '{session_id}'")
    return result


@app.get("/api/analysis/{session_id}/progress")
def get_progress(session_id: str):
    try:
        events = get_session_manager().get_progress(session_id)
    except Exception as e:
        raise _to_http_error(e)
    return {"session_id": session_id, "events": events, "total_events": len(events)}


@app.get("/api/analysis/{session_id}/impact/{object_name}")
def get_impact(session_id: str, object_name: str):
    """What breaks if the named object changes"""
    try:
        result = get_session_manager().get_result(session_id)
    except Exception as e:
        raise _to_http_error(e)
    if result is None or result.relationships is None:
        raise HTTPException(status_code=404, detail="Relationships analysis has not run for this session")

    node = result.relationships.find_node(object_name)
    if node is None:
        raise HTTPException(status_code=404, detail=f"Object '{object_name}' not found in the dependency graph")
    return {
        "object": node.full_name,
        "object_type": node.object_type,
        "external_database": node.external_database,
        "depends_on": node.depends_on,
        "referenced_by": node.referenced_by,
        "transitive_impact": node.transitive_impact,
        "importance_score": node.importance_score,
    }


@app.post("/api/disconnect")
def disconnect(req: DisconnectRequest):
    if not get_session_manager().disconnect(req.session_id):
        raise HTTPException(status_code=404, detail=f"Session '{req.session_id}' not found")
    return {"message": f"Session {req.session_id} disconnected"}


def run():
    """Run the API server"""
    settings = AnalysisSettings.from_env()
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
