bind = "0.0.0.0:9104"
# Reloads and shared connection pools live in one process; scale with threads.
workers = 1
threads = 8
worker_class = "gthread"

loglevel = "info"
accesslog = "-"  # Log to stdout
errorlog = "-"   # Log to stderr

# Worker timeout should be above the longest Prometheus scrape timeout.
timeout = 60
keepalive = 2
graceful_timeout = 30

max_requests = 0
preload_app = False

enable_stdio_inheritance = True
disable_redirect_access_to_syslog = True

### TLS is configured through --web.config.file; these take cert and key paths.
# certfile = "/certs/server.crt"
# keyfile = "/certs/server.key"


def worker_abort(worker):
    """Called when a worker is killed after timing out (stuck scrape or client disconnect)."""
    import logging
    logging.warning(f"Worker {worker.pid} timed out - likely a stuck query")


def worker_exit(server, worker):
    """Close the exiting worker's shared connection pools."""
    import logging
    logging.info(f"Worker {worker.pid} exiting")
    app = getattr(worker, 'wsgi', None)
    state = app.config.get('EXPORTER_STATE') if app is not None else None
    if state is not None:
        state.connections.close()


def on_exit(server):
    """Called when the master process is exiting."""
    import logging
    logging.info("Gunicorn master process exiting")
