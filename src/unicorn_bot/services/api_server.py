from __future__ import annotations

import hashlib
import hmac
from typing import Any, Awaitable, Callable, Iterable

from aiohttp import web

from unicorn_bot.command import ApiRoute
from unicorn_bot.errors import ConfigurationError
from unicorn_bot.services.logger_service import LoggerService

USER_ID_HEADER = "X-User-Id"


def derive_api_key(client_secret: str, client_id: int | str | None) -> str:
    if not client_secret:
        raise ConfigurationError("CLIENT_SECRET is required to serve API routes")
    digest = hmac.new(client_secret.encode("utf-8"), str(client_id or "").encode("utf-8"), hashlib.sha256)
    return digest.hexdigest()


def _unauthorized() -> web.Response:
    return web.json_response({"error": "Unauthorized"}, status=401)


class ApiServer:
    """HTTP surface for the API routes declared by commands.

    Every request must present the shared API key in ``Authorization`` and the
    calling user's id in ``X-User-Id``. Handlers get the bot in
    ``request["bot"]`` and that id in ``request["user_id"]``.
    """

    def __init__(
        self,
        bot: Any,
        routes: Iterable[ApiRoute],
        *,
        api_key: str,
        logger: LoggerService,
        host: str = "0.0.0.0",
        port: int = 4242,
    ) -> None:
        if not api_key:
            raise ValueError("the API server needs a non-empty api key")
        self.bot = bot
        self.routes = list(routes)
        self.api_key = api_key
        self.logger = logger
        self.host = host
        self.port = port
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    def build_app(self) -> web.Application:
        app = web.Application(middlewares=[self._authenticate])
        app["bot"] = self.bot
        for route in self.routes:
            app.router.add_route(route.method, route.path, route.handler)
            self.logger.info("api.route", method=route.method, path=route.path)
        return app

    @web.middleware
    async def _authenticate(
        self, request: web.Request, handler: Callable[[web.Request], Awaitable[web.StreamResponse]]
    ) -> web.StreamResponse:
        request["bot"] = self.bot
        presented = request.headers.get("Authorization", "")
        if not hmac.compare_digest(presented.encode("utf-8"), self.api_key.encode("utf-8")):
            self.logger.warn("api.unauthorized", path=request.path, reason="bad api key")
            return _unauthorized()
        user_id = request.headers.get(USER_ID_HEADER, "").strip()
        if not user_id:
            self.logger.warn("api.unauthorized", path=request.path, reason="missing user id")
            return _unauthorized()
        request["user_id"] = user_id
        return await handler(request)

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()
        self.logger.info("api.listening", host=self.host, port=self.port)

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
