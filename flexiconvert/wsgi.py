# Apply eventlet monkey patch FIRST, before ANY other imports
# Flask-SocketIO with eventlet needs the patched socket/threading modules
import eventlet

eventlet.monkey_patch()

from flexiconvert.app import create_app, socketio  # noqa: E402

app = create_app()

if __name__ == "__main__":
    socketio.run(app, host="0.0.0.0", port=8060)
