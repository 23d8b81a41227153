from contextlib import asynccontextmanager
from fastapi import FastAPI
from vpn_server_api import __version__
from vpn_server_api.config import load_settings
from vpn_server_api.context import AppContext, build_context
from vpn_server_api.routers import certificates, connections, profiles, user_messages, users


def create_app(context: AppContext | None = None) -> FastAPI:
    """App factory; without a context one is built from the environment at start-up."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ctx = context if context is not None else build_context(load_settings())
        app.state.context = ctx
        try:
            yield
        finally:
            await ctx.aclose()

    app = FastAPI(title="VPN Server API", version=__version__, lifespan=lifespan)

    app.include_router(connections.router)
    app.include_router(certificates.router)
    app.include_router(user_messages.router)
    app.include_router(users.router)
    app.include_router(profiles.router)

    @app.get("/")
    def root():
        return {"message": "VPN Server API", "docs": "/docs"}

    return app


app = create_app()
