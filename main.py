import asyncio
import logging
from contextlib import asynccontextmanager
from functools import partial
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

import db
from appdynamics import make_snapshot
from config import Settings, maybe_load_dotenv
from errors import AutomatorError, ConfigurationError, ProfileNotFoundError
from logging_config import configure_logging
from models import (
    AppDynamicsDataRequest,
    ClientProfile,
    ClientProfileInput,
    MessageRequest,
    ReportRequest,
    TeamsRequest,
)
from presenter import generate_client_report, relay_client_report, resolve_client
from relay import send_to_teams

maybe_load_dotenv()
configure_logging()
logger = logging.getLogger("appd_automator.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings.from_env()
    db.init_db(settings.database_url)
    app.state.settings = settings
    logger.info("Profile store ready at %s", settings.database_url)
    yield


app = FastAPI(title="AppD Automator", version="0.1.0", lifespan=lifespan)


@app.exception_handler(AutomatorError)
async def automator_error_handler(request: Request, exc: AutomatorError):
    if isinstance(exc, ConfigurationError):
        status = 400
    elif isinstance(exc, ProfileNotFoundError):
        status = 404
    else:
        status = 500
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse({"error": str(exc)}, status_code=status)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return JSONResponse({"error": "Invalid request: " + "; ".join(problems)}, status_code=400)


async def run_blocking(func, *args, **kwargs):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(func, *args, **kwargs))


def _profile_out(client):
    return ClientProfile.model_validate(client).model_dump(by_alias=True)


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


@app.post("/api/appdynamics-data")
async def appdynamics_data(payload: AppDynamicsDataRequest, request: Request):
    settings = request.app.state.settings
    return await run_blocking(
        make_snapshot,
        payload.controller_url,
        payload.account_name,
        payload.client_name,
        payload.client_secret,
        timeout=settings.http_timeout_seconds,
    )


@app.post("/api/send-teams")
async def send_teams(payload: TeamsRequest, request: Request):
    settings = request.app.state.settings
    await run_blocking(
        send_to_teams,
        payload.message,
        payload.webhook_url,
        timeout=settings.http_timeout_seconds,
    )
    return {"success": True}


@app.get("/api/clients")
async def get_clients():
    clients = await run_blocking(db.list_clients)
    selected = await run_blocking(db.get_selected_client_id)
    return {"clients": [_profile_out(c) for c in clients], "selectedClientId": selected}


@app.post("/api/clients", status_code=201)
async def create_client(payload: ClientProfileInput):
    client = await run_blocking(db.add_client, payload.provided())
    return _profile_out(client)


@app.put("/api/clients/{client_id}")
async def edit_client(client_id: str, payload: ClientProfileInput):
    client = await run_blocking(db.update_client, client_id, payload.provided())
    return _profile_out(client)


@app.delete("/api/clients/{client_id}")
async def remove_client(client_id: str):
    selected = await run_blocking(db.delete_client, client_id)
    return {"status": "ok", "selectedClientId": selected}


@app.post("/api/clients/{client_id}/select")
async def choose_client(client_id: str):
    selected = await run_blocking(db.select_client, client_id)
    return {"selectedClientId": selected}


@app.post("/api/report")
async def report(request: Request, payload: Optional[ReportRequest] = None):
    settings = request.app.state.settings
    profile = await run_blocking(resolve_client, payload.client_id if payload else None)
    return await run_blocking(generate_client_report, profile, settings)


@app.post("/api/clients/{client_id}/send-teams")
async def send_client_teams(client_id: str, payload: MessageRequest, request: Request):
    settings = request.app.state.settings
    profile = await run_blocking(db.get_client, client_id)
    await run_blocking(relay_client_report, profile, payload.message, settings)
    return {"success": True}


def run():
    import uvicorn

    settings = Settings.from_env()
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
