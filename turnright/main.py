from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from turnright.api.routers.routes import router as routes_router
from turnright.core.settings import get_settings

load_dotenv()


def create_app() -> FastAPI:
    application = FastAPI(title="TurnRight Route Engine")

    # CORS: local frontends for development
    allowed_origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Add production origins from environment if set
    settings = get_settings()
    if settings.allowed_origins:
        allowed_origins.extend(
            [origin.strip() for origin in settings.allowed_origins.split(",") if origin.strip()]
        )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @application.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    application.include_router(routes_router)
    return application


app = create_app()
