from potdraft import create_app, socketio

app = create_app()

if __name__ == '__main__':
    # Use SocketIO server so clients get the /ws change feed in dev
    socketio.run(app, debug=True)
