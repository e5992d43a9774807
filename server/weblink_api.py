"""HTTP surface of the weblink pipeline."""

import logging
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, Field

from config.settings import IngestionSettings
from observability.logging import setup_logging
from observability.prometheus_metrics import setup_prometheus_metrics
from services.weblink.service import WeblinkService
from services.weblink.types import Selection, Source

logger = logging.getLogger(__name__)


class LinkItem(BaseModel):
    url: str
    title: Optional[str] = None
    origin: Optional[str] = None
    originPageUrl: Optional[str] = None
    originPageTitle: Optional[str] = None
    originPageDescription: Optional[str] = None
    lastVisitTime: Optional[int] = None
    visitCount: Optional[int] = None
    readTime: Optional[int] = None
    storageKey: Optional[str] = None


class StoreLinksRequest(BaseModel):
    userId: int
    links: List[LinkItem] = Field(default_factory=list)


class SelectionItem(BaseModel):
    content: str
    xPath: Optional[str] = None


class SourceItem(BaseModel):
    metadata: Dict[str, Any] = Field(default_factory=dict)
    selections: List[SelectionItem] = Field(default_factory=list)

    def to_source(self) -> Source:
        return Source(
            metadata=dict(self.metadata),
            selections=[Selection(content=s.content, x_path=s.xPath) for s in self.selections],
        )


class ReadRequest(BaseModel):
    sources: List[SourceItem] = Field(default_factory=list)


def get_service(request: Request) -> WeblinkService:
    """Dependency to get the weblink service."""
    service = getattr(request.app.state, 'weblink_service', None)
    if service is None:
        raise HTTPException(status_code=503, detail="Weblink service not initialized")
    return service


def register_routes(app: FastAPI) -> None:

    @app.post("/weblink/store")
    async def store_links(body: StoreLinksRequest, service: WeblinkService = Depends(get_service)):
        links = [item.model_dump(exclude_none=True) for item in body.links]
        jobs = await service.store_links(body.userId, links)
        return {"success": True, "queued": len(jobs), "urls": [job.url for job in jobs]}

    @app.get("/weblink/content")
    async def read_content(url: str = Query(...), service: WeblinkService = Depends(get_service)):
        data = await service.read_weblink_content(url)
        if data is None or data.doc is None:
            raise HTTPException(status_code=404, detail="Content not available")
        return {"success": True, "data": data.doc.to_dict()}

    @app.post("/weblink/read")
    async def read_multi(body: ReadRequest, service: WeblinkService = Depends(get_service)):
        docs = await service.read_multi_weblinks([item.to_source() for item in body.sources])
        return {"success": True, "data": [doc.to_dict() for doc in docs]}

    @app.get("/weblink/history")
    async def history(userId: int = Query(...), skip: int = Query(0, ge=0),
                      take: int = Query(20, ge=1, le=100), order: str = Query("desc", pattern="^(asc|desc)$"),
                      service: WeblinkService = Depends(get_service)):
        visits = await service.get_user_history(userId, skip=skip, take=take, order=order)
        return {"success": True, "data": [visit.to_dict() for visit in visits]}

    @app.get("/health")
    async def health():
        return {"status": "ok"}


def create_app(service: Optional[WeblinkService] = None) -> FastAPI:
    """Build the API app.

    With a service the app is ready to serve (tests, embedding); without one
    the service and job manager are built from the environment at startup.
    """
    app = FastAPI(title="linkfoundry weblink API", version="0.1.0")
    app.state.weblink_service = service
    setup_prometheus_metrics(app)
    register_routes(app)

    if service is None:
        @app.on_event("startup")
        async def startup_event():
            """Initialize logging, the service and the job manager."""
            from .bootstrap import build_weblink_service
            from .jobs import job_manager

            settings = IngestionSettings.from_env()
            setup_logging(level=settings.log_level, use_json=settings.log_json)
            context = build_weblink_service(settings, job_manager)
            await job_manager.initialize()
            if job_manager.redis_client is None:
                logger.warning("Redis unavailable; submitted links will not reach any worker")
            app.state.context = context
            app.state.weblink_service = context.service
            logger.info("Weblink API started")

        @app.on_event("shutdown")
        async def shutdown_event():
            """Clean up resources on shutdown."""
            context = getattr(app.state, 'context', None)
            if context is not None:
                await context.close()
                logger.info("Weblink API resources closed")

    return app
