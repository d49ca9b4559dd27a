"""FastAPI dependencies shared by routers."""
from fastapi import HTTPException, Request

from clinic_notify.services.notifications.dispatcher import Dispatcher


def get_dispatcher(request: Request) -> Dispatcher:
    """Dispatcher built at startup (see main.lifespan)."""
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise HTTPException(status_code=503, detail="Dispatcher not initialised")
    return dispatcher
