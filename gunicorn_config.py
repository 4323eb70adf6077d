import os

# Gunicorn configuration file
# https://docs.gunicorn.org/en/stable/configure.html#configuration-file

wsgi_app = "studybuddy.webhook_server:create_app()"

# Server socket
bind = f"0.0.0.0:{os.getenv('PORT', '4000')}"
backlog = 2048

# One worker: the daily scheduler and the subscription lock live in-process.
workers = 1
worker_class = "gthread"
threads = int(os.getenv("GUNICORN_THREADS", "8"))
timeout = 120
keepalive = 2

# Logging
accesslog = "-"
errorlog = "-"
loglevel = "info"

# Process naming
proc_name = "studybuddy_reminders"


def post_worker_init(worker):
    from studybuddy.webhook_server import start_worker

    start_worker(worker.wsgi)


def worker_exit(server, worker):
    worker.wsgi.extensions["reminder_scheduler"].shutdown()
