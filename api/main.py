import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from app.core.exchange.errors import ERROR_MESSAGES
from app.config.settings import settings

from .routers import requests, rooms

app = FastAPI(
    title="Time-Slot Exchange API",
    description="Request, approve and chain time-slot exchanges inside scheduling rooms",
    version="0.1.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def invalid_body_handler(request: Request, exc: RequestValidationError):
    logging.info("Invalid body on %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=400,
        content={"detail": {"msg": ERROR_MESSAGES["REQUIRED_FIELDS_MISSING"]}},
    )


app.include_router(requests.router)
app.include_router(rooms.router)

if __name__ == "__main__":
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
    )
