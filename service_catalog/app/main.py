"""
Catalog service for the Vara admin backend.
"""

import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, Query, Request

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import AuthorizationError
from shared.retry import RetryConfig

from .analytics.aggregator import AnalyticsAggregator
from .auth.manager import AuthManager, LoginRequest, RegisterRequest
from .auth.middleware import Authenticator, require_role
from .auth.tokens import TokenService
from .caching.response_cache import ResponseCache
from .caching.routing import cached_route
from .catalog.manager import CatalogManager, INSTRUMENTS, MOODS
from .catalog.models import (
    BatchCreateRequest, GenreCreateRequest, GenreUpdateRequest,
    ReferenceItemRequest, ReferenceItemUpdateRequest, SongCreateRequest,
    SongUpdateRequest, SubGenreCreateRequest, SubGenreUpdateRequest,
)
from .favorites.manager import FavoritesManager
from .favorites.models import DownloadTrackRequest, FavoriteAddRequest
from .panels.manager import PanelManager
from .panels.models import PanelCreateRequest, PanelPasswordRequest, PanelUpdateRequest
from .persistence.base import DocumentStore
from .persistence.memory import InMemoryDocumentStore
from .persistence.mongo import MongoDocumentStore
from .storage.object_store import ObjectStore
from .versioning.content_version import ContentVersionStore


class CatalogService(BaseService):
    """Catalog service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        document_store: Optional[DocumentStore] = None,
        object_store: Optional[ObjectStore] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        super().__init__("catalog", 8020, config=config)
        self.clock = clock or time.time

        # Process-scoped state: one store, version owner and response cache per service
        self.store = document_store or self._create_document_store()
        self.objects = object_store or ObjectStore(
            self.config.s3_bucket,
            self.config.s3_public_base_url,
            endpoint_url=self.config.s3_endpoint_url,
            region=self.config.s3_region,
            retry_config=RetryConfig(max_attempts=self.config.s3_delete_attempts, base_delay=0.2, max_delay=2.0),
            metrics=self.metrics,
        )
        self.versions = ContentVersionStore(self.store, clock=self.clock, metrics=self.metrics)
        self.response_cache = ResponseCache(clock=self.clock, metrics=self.metrics)

        self.catalog = CatalogManager(self.store, self.versions, self.objects)
        self.analytics = AnalyticsAggregator(self.store, self.catalog, clock=self.clock)

        self.tokens = TokenService(
            self.config.jwt_secret,
            algorithm=self.config.jwt_algorithm,
            expires_minutes=self.config.jwt_expires_minutes,
            clock=self.clock,
        )
        self.authenticator = Authenticator(self.store, self.tokens)
        self.auth = AuthManager(self.store, self.tokens)
        self.panels = PanelManager(self.store)
        self.favorites = FavoritesManager(self.store)
        self.admin_only = require_role(self.authenticator, "admin")

        @self.app.on_event("startup")
        async def _startup():
            await self.start()

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.stop()

        self._setup_session_middleware()
        self._setup_catalog_routes()
        self._setup_reference_routes(MOODS, "/api/moods")
        self._setup_reference_routes(INSTRUMENTS, "/api/instruments")
        self._setup_song_routes()
        self._setup_analytics_routes()
        self._setup_auth_routes()
        self._setup_panel_routes()
        self._setup_favorites_routes()

    def _create_document_store(self) -> DocumentStore:
        if self.config.document_store == "memory":
            return InMemoryDocumentStore()
        return MongoDocumentStore(self.config.mongodb_uri, self.config.mongodb_database)

    def _cached_get(self, path: str, endpoint: Callable[..., Any], ttl_seconds: int, max_age: int):
        """Register a GET route behind the response cache and advisory header."""
        self.app.router.add_api_route(
            path,
            endpoint,
            methods=["GET"],
            route_class_override=cached_route(self.response_cache, ttl_seconds, max_age),
        )

    def _setup_session_middleware(self):
        """Attach the session user, when a usable token is present."""

        @self.app.middleware("http")
        async def attach_session_user(request: Request, call_next):
            await self.authenticator.optional(request)
            return await call_next(request)

    def _setup_catalog_routes(self):
        """Set up genre, sub-genre, batch and version routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "catalog",
                "message": "Vara Admin Backend - Catalog Service",
                "version": "1.0.0",
                "capabilities": ["catalog", "content_versioning", "response_cache", "analytics", "panels", "favorites"]
            }

        @self.app.get("/api/content-version")
        async def get_content_version():
            """Current content version snapshot."""
            return await self.versions.read()

        @self.app.get("/api/cache/stats", dependencies=[Depends(self.admin_only)])
        async def get_cache_stats():
            """Response cache diagnostics."""
            return self.response_cache.stats()

        # Genres
        @self.app.post("/api/genres", status_code=201)
        async def create_genre(request: GenreCreateRequest):
            return await self.catalog.create_genre(request)

        @self.app.get("/api/genres")
        async def list_genres():
            return await self.catalog.list_genres()

        @self.app.put("/api/genres/{genre_id}")
        async def update_genre(genre_id: str, request: GenreUpdateRequest):
            return await self.catalog.update_genre(genre_id, request)

        @self.app.delete("/api/genres/{genre_id}")
        async def delete_genre(genre_id: str):
            return await self.catalog.delete_genre(genre_id)

        # Sub-genres
        @self.app.post("/api/subgenres", status_code=201)
        async def create_subgenre(request: SubGenreCreateRequest):
            return await self.catalog.create_subgenre(request)

        @self.app.get("/api/subgenres")
        async def list_subgenres():
            return await self.catalog.list_subgenres()

        @self.app.get("/api/subgenres/byGenre/{genre_id}")
        async def list_subgenres_by_genre(genre_id: str):
            return await self.catalog.list_subgenres_by_genre(genre_id)

        @self.app.put("/api/subgenres/{subgenre_id}")
        async def update_subgenre(subgenre_id: str, request: SubGenreUpdateRequest):
            return await self.catalog.update_subgenre(subgenre_id, request)

        @self.app.delete("/api/subgenres/{subgenre_id}")
        async def delete_subgenre(subgenre_id: str):
            return await self.catalog.delete_subgenre(subgenre_id)

        # Batches
        @self.app.get("/api/batches/health")
        async def batches_health():
            """Batch router liveness probe."""
            return {"ok": True, "router": "batches", "ts": datetime.now(timezone.utc).isoformat()}

        @self.app.post("/api/batches", status_code=201)
        async def create_batch(request: BatchCreateRequest):
            return await self.catalog.create_batch(request)

        async def list_batches():
            return await self.catalog.list_batches()

        self._cached_get(
            "/api/batches",
            list_batches,
            self.config.reference_cache_ttl,
            self.config.reference_max_age,
        )

    def _setup_reference_routes(self, collection: str, prefix: str):
        """Set up CRUD routes for a mood-like reference collection."""

        async def create_item(request: ReferenceItemRequest):
            return await self.catalog.create_reference_item(collection, request)

        async def list_items():
            return await self.catalog.list_reference_items(collection)

        async def update_item(item_id: str, request: ReferenceItemUpdateRequest):
            return await self.catalog.update_reference_item(collection, item_id, request)

        async def delete_item(item_id: str):
            return await self.catalog.delete_reference_item(collection, item_id)

        self.app.router.add_api_route(
            prefix, create_item, methods=["POST"], status_code=201, name=f"create_{collection}"
        )
        self._cached_get(
            prefix,
            list_items,
            self.config.reference_cache_ttl,
            self.config.reference_max_age,
        )
        self.app.router.add_api_route(
            f"{prefix}/{{item_id}}", update_item, methods=["PUT"], name=f"update_{collection}"
        )
        self.app.router.add_api_route(
            f"{prefix}/{{item_id}}", delete_item, methods=["DELETE"], name=f"delete_{collection}"
        )

    def _setup_song_routes(self):
        """Set up song and recommendation routes."""

        @self.app.post("/api/songs", status_code=201)
        async def create_song(request: SongCreateRequest):
            return await self.catalog.create_song(request)

        @self.app.get("/api/songs")
        async def list_songs():
            return await self.catalog.list_songs()

        @self.app.put("/api/songs/{song_id}")
        async def update_song(song_id: str, request: SongUpdateRequest):
            return await self.catalog.update_song(song_id, request)

        @self.app.delete("/api/songs/{song_id}")
        async def delete_song(song_id: str):
            return await self.catalog.delete_song(song_id)

        async def weekly_recommendations():
            return await self.catalog.weekly_recommendations(self.config.recommendations_limit)

        self._cached_get(
            "/api/weekly-recommendations",
            weekly_recommendations,
            self.config.recommendations_cache_ttl,
            self.config.recommendations_max_age,
        )

    def _setup_analytics_routes(self):
        """Set up analytics routes."""

        @self.app.get("/api/analytics/songs")
        async def songs_analytics():
            return await self.analytics.songs_overview()

        @self.app.get("/api/analytics/songs/{song_id}")
        async def song_analytics(song_id: str, days: int = Query(7, ge=1, le=365)):
            return await self.analytics.song_detail(song_id, days)

        @self.app.get("/api/analytics/platform")
        async def platform_analytics(days: int = Query(7, ge=1, le=365)):
            return await self.analytics.platform_stats(days)

        @self.app.post("/api/analytics/reset-weekly")
        async def reset_weekly():
            reset = await self.analytics.reset_weekly_counters()
            return {"message": "Weekly counters reset successfully", "songs": reset}

    def _setup_auth_routes(self):
        """Set up registration and login routes."""

        @self.app.post("/api/auth/register", status_code=201)
        async def register(request: RegisterRequest):
            if not self.config.registration_enabled:
                raise AuthorizationError("Registration is disabled")
            return await self.auth.register(request)

        @self.app.post("/api/auth/login")
        async def login(request: LoginRequest):
            return await self.auth.login(request)

    def _setup_panel_routes(self):
        """Set up admin-only panel routes."""
        admin = [Depends(self.admin_only)]

        @self.app.get("/api/panels", dependencies=admin)
        async def list_panels():
            return await self.panels.list_panels()

        @self.app.post("/api/panels", status_code=201, dependencies=admin)
        async def create_panel(request: PanelCreateRequest):
            return await self.panels.create_panel(request)

        @self.app.patch("/api/panels/{panel_id}", dependencies=admin)
        async def update_panel(panel_id: str, request: PanelUpdateRequest):
            return await self.panels.update_panel(panel_id, request)

        @self.app.patch("/api/panels/{panel_id}/password", dependencies=admin)
        async def update_panel_password(panel_id: str, request: PanelPasswordRequest):
            return await self.panels.update_password(panel_id, request)

        @self.app.delete("/api/panels/{panel_id}", dependencies=admin)
        async def delete_panel(panel_id: str):
            return await self.panels.delete_panel(panel_id)

    def _setup_favorites_routes(self):
        """Set up routes for the signed-in user's favorites and downloads."""
        signed_in = Depends(self.authenticator.authenticate)

        @self.app.get("/api/user/favorites")
        async def list_favorites(user: Dict[str, Any] = signed_in):
            return await self.favorites.list_favorites(user["_id"])

        @self.app.post("/api/user/favorites")
        async def add_favorite(request: FavoriteAddRequest, user: Dict[str, Any] = signed_in):
            return await self.favorites.add_favorite(user["_id"], request.song_id)

        @self.app.delete("/api/user/favorites/{song_id}")
        async def remove_favorite(song_id: str, user: Dict[str, Any] = signed_in):
            return await self.favorites.remove_favorite(user["_id"], song_id)

        @self.app.post("/api/user/track-download")
        async def track_download(request: DownloadTrackRequest, user: Dict[str, Any] = signed_in):
            return await self.favorites.track_download(user["_id"], request.song_id, request.song_title)

    async def _check_dependencies(self):
        """Check catalog service dependencies."""
        try:
            healthy = await self.store.health_check()
        except Exception:
            healthy = False
        return {"document_store": "ok" if healthy else "error"}

    async def start(self):
        """Start catalog service components."""
        await self.store.start()
        self.logger.info("Catalog service started", document_store=type(self.store).__name__)

    async def stop(self):
        """Stop catalog service components."""
        await self.store.stop()
        self.logger.info("Catalog service stopped")


def create_app():
    """Create catalog service application."""
    service = CatalogService()
    return service.app


if __name__ == "__main__":
    service = CatalogService()
    service.run()
