import json
import queue

from flask import Response, current_app

from app.services.change_feed import get_notifier


def change_stream(table, **filters):
    """Server-Sent Events stream of committed changes to ``table``.

    Each event only announces that rows changed; clients re-fetch what they show.
    """
    notifier = get_notifier()
    keepalive = current_app.config.get("CHANGE_FEED_KEEPALIVE_SECONDS", 15)
    token, changes = notifier.queue_subscription(table, **filters)

    def generate():
        try:
            yield "event: ready\ndata: {}\n\n"
            while True:
                try:
                    change = changes.get(timeout=keepalive)
                except queue.Empty:
                    yield ": keepalive\n\n"
                    continue
                yield f"event: change\ndata: {json.dumps(change.to_dict(), default=str)}\n\n"
        finally:
            notifier.unsubscribe(token)

    resp = Response(generate(), mimetype="text/event-stream")
    resp.headers["Cache-Control"] = "no-cache"
    resp.headers["X-Accel-Buffering"] = "no"
    resp.call_on_close(lambda: notifier.unsubscribe(token))
    return resp
