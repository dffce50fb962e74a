from flask_sqlalchemy import SQLAlchemy
from flask_socketio import SocketIO

# Initialize extensions (no app yet)
db = SQLAlchemy()
socketio = SocketIO(cors_allowed_origins="*")
