"""Console composition root."""
from __future__ import annotations

import httpx

from .auth import SessionContext, require_permission
from .config import Settings, settings as default_settings
from .gateway import ActivityLogGateway, ApiClient, AuthGateway, DirectoryGateway
from .schemas import ActivityStatistics, DirectoryStatistics
from .services.activity_log import ActivityLogQuery
from .services.notifications import Notifier
from .use_cases.directory_screen import DirectoryScreen


def check_production_settings(settings: Settings) -> None:
    """Fail closed on insecure production configuration."""
    if settings.ENV.lower() != "production":
        return
    if not settings.API_BASE_URL.startswith("https://"):
        raise RuntimeError("API_BASE_URL must use https in production.")
    if "localhost" in settings.API_BASE_URL or "127.0.0.1" in settings.API_BASE_URL:
        raise RuntimeError("API_BASE_URL points at localhost in production; set it to the real API origin.")


class PersonnelConsole:
    """Owns the session, the HTTP client and every screen built on them."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or default_settings
        check_production_settings(self.settings)

        self.session = SessionContext()
        self.notifier = Notifier()
        self.api = ApiClient(
            self.session,
            base_url=self.settings.api_base_url,
            transport=transport,
            timeout=self.settings.HTTP_TIMEOUT_SECONDS,
        )
        self.auth = AuthGateway(self.api)
        self.directory = DirectoryGateway(self.api)
        self.activity_logs = ActivityLogGateway(self.api)

        self.directory_screen = DirectoryScreen(self.directory, self.session, self.notifier)
        self.activity_log_query = ActivityLogQuery(
            self.activity_logs,
            notifier=self.notifier,
            per_page=self.settings.ACTIVITY_LOG_PAGE_SIZE,
        )

    async def __aenter__(self) -> "PersonnelConsole":
        return self

    async def __aexit__(self, *_exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.api.aclose()

    async def load_statistics(self) -> tuple[DirectoryStatistics, ActivityStatistics]:
        """Admin dashboard counters."""
        require_permission(self.session, "canViewStatistics")
        return await self.directory.statistics(), await self.activity_logs.statistics()
