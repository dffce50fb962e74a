import logging
import os

from medalarm import create_app
from medalarm.extensions import socketio

logging.basicConfig(level=logging.INFO)

app = create_app()

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    socketio.run(app, host="0.0.0.0", port=port)
