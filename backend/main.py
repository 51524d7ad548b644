import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import router as auth_router
from catalogues import router as catalogues_router
from dependencies import SERVICE_VERSION, get_env_list
from mitre import router as mitre_router
from risk_ids import INVALID_RISK_ID_MESSAGE
from risks import router as risks_router
from treatments import router as treatments_router
from workshops import router as workshops_router

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="ISMS Risk Register API", version=SERVICE_VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_env_list("CORS_ALLOW_ORIGINS", ["*"]),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router, prefix="/auth")
app.include_router(risks_router)
app.include_router(treatments_router)
app.include_router(workshops_router)
app.include_router(catalogues_router)
app.include_router(mitre_router)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    messages = [error.get("msg", "Invalid request").removeprefix("Value error, ") for error in errors]
    # A malformed risk id is a 400 wherever it appears among the errors
    if INVALID_RISK_ID_MESSAGE in messages:
        status_code, message = 400, INVALID_RISK_ID_MESSAGE
    else:
        status_code, message = 422, messages[0] if messages else "Invalid request"
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": message,
            "details": [
                {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
                for error in errors
            ],
        },
    )


@app.get("/")
def read_root():
    return {
        "message": "ISMS Risk Register API",
        "version": SERVICE_VERSION,
        "description": "ISO 27001 risk register, treatments, workshops and SoA controls",
    }


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "ISMS Risk Register"}
