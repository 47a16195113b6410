from app import create_app

app = create_app()

# gunicorn -w 1 wsgi:app
# Set RUN_QUEUE_WORKER=1 on exactly one instance so a single process consumes the queue.
