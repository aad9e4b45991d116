from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import ValidationError
from core.health_check import database_is_reachable, health_check
from core.log import logger
from routes.attendance import router as attendance_router
from routes.auth import router as auth_router
from routes.enrollment import router as enrollment_router

health_check()

app = FastAPI(title="Congress Enrollment BE")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(enrollment_router)
app.include_router(attendance_router)


@app.exception_handler(ValidationError)
async def pydantic_validation_exception_handler(request: Request, exc: ValidationError):
    error_details = []
    for error in exc.errors():
        field = error["loc"][0] if error["loc"] else "general"
        message = error["msg"]
        error_details.append({"field": field, "message": message})

    return JSONResponse(
        status_code=422,
        content={
            "message": "Validation error in submitted data.",
            "errors": error_details,
        },
    )


@app.get("/")
async def hello():
    logger.info("hello")
    return {"Hello": "from congress enrollment BE"}


@app.get("/health")
def health():
    if not database_is_reachable():
        return JSONResponse(status_code=503, content={"status": "unavailable"})
    return {"status": "ok"}


# counters of core.metrics live in the default registry
@app.get("/metrics")
def metrics():
    return PlainTextResponse(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
