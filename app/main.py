from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.core.config import settings
from app.core.errors import install_error_handlers, success_payload
from app.core.http_hardening import install_http_hardening
from app.api.router import router as api_router

app = FastAPI(title=settings.APP_NAME, version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
install_http_hardening(app)
install_error_handlers(app)

app.include_router(api_router, prefix="/api")

@app.get("/", include_in_schema=False)
def landing():
    return success_payload("Service is running", {"service": settings.APP_NAME, "env": settings.APP_ENV})

@app.get("/health")
def health():
    return {"status": "ok"}
