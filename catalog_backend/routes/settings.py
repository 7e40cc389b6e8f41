from __future__ import annotations

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ..logs import OperationLogContext
from ..services.config_svc import get_config, update_config

router = APIRouter()


@router.get("/api/settings/get")
def api_settings_get():
    return get_config()


class SettingsUpdateBody(BaseModel):
    updates: dict


@router.post("/api/settings/update")
def api_settings_update(body: SettingsUpdateBody):
    log = OperationLogContext("SETTINGS_UPDATE")
    log.set_payload(body.model_dump())
    try:
        updated_keys = update_config(body.updates, log)
        log.write("OK")
        return {"message": "ok", "updated": updated_keys}
    except ValueError as ve:
        log.write("ERROR", str(ve))
        raise HTTPException(status_code=400, detail=str(ve))
    except Exception as e:
        log.write("ERROR", str(e))
        raise HTTPException(status_code=500, detail=str(e))
