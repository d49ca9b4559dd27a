"""Push registration: the app sends its FCM registration token after login or token refresh."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from clinic_notify.api.deps import get_dispatcher
from clinic_notify.services.notifications.dispatcher import Dispatcher

router = APIRouter()
logger = logging.getLogger(__name__)


class RegisterPushBody(BaseModel):
    user_id: int = Field(..., ge=1)
    device_token: str = Field(..., min_length=1, max_length=512, description="FCM registration token")
    platform: str = Field(default="android", pattern="^(ios|android)$")


@router.post("/push/register")
def register_push_token(body: RegisterPushBody, dispatcher: Dispatcher = Depends(get_dispatcher)):
    """
    Store the user's device token. One token per user; a new registration replaces the old one.
    """
    token_str = body.device_token.strip()
    if not token_str:
        raise HTTPException(status_code=422, detail="device_token is blank")
    if not dispatcher.token_store.set(body.user_id, token_str):
        raise HTTPException(status_code=404, detail="User not found")
    logger.info("Registered push token for user_id=%s platform=%s", body.user_id, body.platform)
    return {"ok": True, "message": "Token registered"}
