"""
FastAPI application for InfraCity: repository registry, analysis job status
and the technology documentation catalog.
"""

from __future__ import annotations

import importlib.metadata
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Dict, List

import structlog
from fastapi import Body, Depends, FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import TypeAdapter, ValidationError
from sqlalchemy import text
from sqlalchemy.orm import Session

from .config import get_settings
from .db.base import dispose_engine, get_db, init_database
from .db.services import ComponentService, JobService, RepoService, TechDocService
from .schemas.repo_v1 import RepoCreateV1, TechDocIn

# Initialize structured logging
logger = structlog.get_logger()

settings = get_settings()

_tech_docs_adapter = TypeAdapter(List[TechDocIn])


def _package_version() -> str:
    try:
        return importlib.metadata.version("infracity")
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info("Starting InfraCity API", environment=settings.environment)

    try:
        await init_database()
    except Exception as e:
        logger.error(f"Failed to start application: {e}")
        raise

    yield

    logger.info("Shutting down InfraCity API")
    dispose_engine()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.app_name,
    description="Registers source repositories and reports the technology stack detected in them",
    version=_package_version(),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["system"])
async def health() -> dict:
    """Basic liveness check."""
    return {"status": "ok"}


@app.get("/healthz", tags=["system"])
def healthz(db: Session = Depends(get_db)) -> Dict[str, bool]:
    """Health check including database connectivity."""
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except Exception as e:
        logger.warning("Database health check failed", error=str(e))
        db_ok = False
    return {"ok": db_ok, "db": db_ok}


@app.get("/version", tags=["system"])
def version() -> dict[str, str]:
    """Return the version of the application."""
    return {"version": _package_version()}


# Repository Endpoints
@app.post(
    "/api/repos",
    status_code=201,
    tags=["repos"],
    responses={
        200: {"description": "Analysis already pending or running; existing job returned"},
        201: {"description": "Repository registered and analysis job created"},
        400: {"description": "Missing required fields"},
    },
)
def register_repo(
    payload: RepoCreateV1,
    response: Response,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """
    Register a repository (idempotent by URL) and schedule an analysis job.

    Returns immediately; analysis happens in the worker.
    """
    try:
        registration = RepoService(db).register(
            url=payload.url,
            owner=payload.owner,
            name=payload.name,
            default_branch=payload.default_branch,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Failed to register repository", error=str(e))
        raise HTTPException(status_code=500, detail=f"Failed to register repository: {str(e)}")

    if registration.created_job:
        logger.info(
            "Repository registered",
            repo_id=registration.repo.id,
            job_id=registration.job.id,
        )
        message = "Repository registered, analysis started"
    else:
        response.status_code = 200
        message = "Analysis already in progress"

    return {
        "message": message,
        "repoId": registration.repo.id,
        "jobId": registration.job.id,
    }


@app.get("/api/repos", tags=["repos"])
def list_repos(db: Session = Depends(get_db)) -> List[Dict[str, Any]]:
    """List repositories, newest first, with their latest job."""
    return RepoService(db).list_repos_with_latest_job()


@app.get("/api/repos/{repo_id}", tags=["repos"])
def get_repo(repo_id: int, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Get a repository with its components, evidence and job history."""
    repo = RepoService(db).get_repo(repo_id)
    if not repo:
        raise HTTPException(status_code=404, detail="Repository not found")

    docs = TechDocService(db).get_all()
    components = []
    for component in ComponentService(db).get_components(repo_id):
        data = component.to_dict()
        doc = TechDocService.match(component.name, docs)
        data["doc_description"] = doc.description if doc else None
        data["doc_url"] = doc.documentation_url if doc else None
        components.append(data)

    return {
        "repo": repo.to_dict(),
        "components": components,
        "analysisJobs": [job.to_dict() for job in JobService(db).get_jobs_for_repo(repo_id)],
    }


@app.get("/api/jobs/{job_id}", tags=["jobs"])
def get_job(job_id: int, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Get a specific analysis job by ID."""
    job = JobService(db).get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job.to_dict()


# Tech Docs Endpoints
@app.post("/api/tech-docs/bulk", tags=["tech-docs"])
def bulk_upsert_tech_docs(
    payload: Any = Body(...),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Insert or update documentation entries by name in one transaction."""
    if not isinstance(payload, list):
        raise HTTPException(status_code=400, detail="Expected an array of tech docs")

    try:
        docs = _tech_docs_adapter.validate_python(payload)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid tech doc data: {e.error_count()} errors")

    try:
        count = TechDocService(db).bulk_upsert(doc.model_dump() for doc in docs)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid tech doc data: {str(e)}")
    except Exception as e:
        logger.error("Failed to upsert tech docs", error=str(e))
        raise HTTPException(status_code=500, detail=f"Failed to upsert tech docs: {str(e)}")

    logger.info("Tech docs upserted", count=count)
    return {"message": f"Upserted {count} tech docs", "count": count}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
