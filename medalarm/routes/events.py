# medalarm/routes/events.py

import logging

from flask_socketio import join_room, leave_room

from medalarm.extensions import socketio

logger = logging.getLogger(__name__)


# =============================================================
# CAREGIVER ROOMS (one room per user id)
# =============================================================
@socketio.on("join")
def on_join(data):
    user_id = (data or {}).get("userId")
    if not user_id:
        return {"status": "error", "error": "userId is required"}

    join_room(user_id)
    logger.info("[SOCKET] %s joined", user_id)
    return {"status": "ok"}


@socketio.on("leave")
def on_leave(data):
    user_id = (data or {}).get("userId")
    if user_id:
        leave_room(user_id)
    return {"status": "ok"}
