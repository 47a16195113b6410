from app import create_app

app = create_app()

if __name__ == "__main__":
    # With debug=True the reloader child sets WERKZEUG_RUN_MAIN, which starts the worker
    app.run(debug=app.config.get("DEBUG", False), port=app.config["WEBHOOK_PORT"])
