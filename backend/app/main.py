"""
Offer Search API - FastAPI Main Entry

✅ LOCAL:
    cd backend
    source .venv/bin/activate
    python -m uvicorn app.main:app --reload --host 0.0.0.0 --port 8000

✅ QUICK CHECKS:
    curl -i http://127.0.0.1:8000/health
    curl -i "http://127.0.0.1:8000/v1/offers?q=Laptop&max_price=700"
    curl -i "http://127.0.0.1:8000/v1/offers/bot?q=Smartphone&max_price=400"

✅ FEED IMPORT (cron or manual):
    offer-search import-feed
    # or over HTTP:
    curl -X POST -H "X-API-Key: $ADMIN_API_KEY" http://127.0.0.1:8000/v1/feed/import

✅ PRODUCTION:
    Build Command:
        pip install .

    Start Command:
        python -m uvicorn app.main:app --host 0.0.0.0 --port $PORT
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.logger import setup_logging

# ✅ Routers
from app.api.routes_admin import router as admin_router
from app.api.routes_meta import router as meta_router
from app.api.routes_offers import router as offers_router


def create_app() -> FastAPI:
    setup_logging()

    app = FastAPI(
        title="Offer Search API",
        version=settings.APP_VERSION,
        description="Offer aggregation backend for the shopping chatbot (own site, Amazon, Awin feed, comparison sites)",
    )

    # ✅ CORS
    # NOTE:
    # - the chat widget is embedded on the shop's own domain
    # - Swagger docs and local tests need it too
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-API-Key", "Authorization"],
    )

    # ✅ Root (GET /)
    @app.get("/")
    def root():
        return {
            "name": "Offer Search API",
            "status": "ok",
            "docs": "/docs",
            "health": "/health",
            "version": "/version",
        }

    # ✅ Mount routers
    app.include_router(meta_router)
    app.include_router(offers_router)
    app.include_router(admin_router)

    return app


app = create_app()
