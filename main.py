from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import ALLOWED_ORIGINS, logger  # type: ignore
from routers import enhance  # type: ignore
from utils.face_detect import get_default_detector

app = FastAPI(title="Photo Enhancer")

# ---- CORS setup ----
# Credentials can't be combined with a wildcard origin
_allow_any = "*" in ALLOWED_ORIGINS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if _allow_any else ALLOWED_ORIGINS,
    allow_credentials=not _allow_any,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


# --- Security headers ---
@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    return response


@app.get("/api/health")
async def health():
    detector = get_default_detector()
    return {"status": "healthy", "face_detector": bool(detector.available)}


# ---- Include routers ----
app.include_router(enhance.router)

logger.info(f"Photo Enhancer ready (origins={ALLOWED_ORIGINS})")
