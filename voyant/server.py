import asyncio
import logging
import threading
import uuid

from flask import Flask, request, jsonify
from dotenv import load_dotenv

from voyant import init_db
from voyant.graph.graph import ERROR_REPLY, build_graph, process_turn

load_dotenv()
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = Flask(__name__)

# set by create_app() in tests; None means the lazily built default runtime
_services = None
_graph = None

# one loop for the process so async LLM clients stay bound to it; the lock also
# serializes turns, which the slot store requires per thread
_loop = asyncio.new_event_loop()
_loop_lock = threading.Lock()


def _run(coro):
    with _loop_lock:
        return _loop.run_until_complete(coro)


def create_app(services=None) -> Flask:
    global _services, _graph
    _services = services
    # compiled once; process_turn would otherwise rebuild it on every request
    _graph = build_graph(services) if services is not None else None
    return app


@app.get("/health")
def health():
    return jsonify({"ok": True})


@app.post("/chat")
def chat():
    body = request.get_json(force=True, silent=True) or {}
    message = body.get("message")
    if not isinstance(message, str):
        return jsonify({"error": "message is required"}), 400

    thread_id = (body.get("thread_id") or body.get("conversation_id") or "").strip() or uuid.uuid4().hex

    try:
        out = _run(process_turn(message, thread_id, services=_services, graph=_graph))
    except Exception:
        logger.exception("turn failed for thread %s", thread_id)
        return jsonify({"thread_id": thread_id, "done": True, "reply": ERROR_REPLY, "citations": None}), 500

    return jsonify({
        "thread_id": thread_id,
        "done": out["done"],
        "reply": out["reply"],
        "citations": out.get("citations"),
        "trace": out.get("trace", []),
    })


@app.get("/threads/<thread_id>/receipts")
def receipts(thread_id: str):
    services = _services
    if services is None:
        from voyant.graph.graph import default_runtime

        services = default_runtime()[0]
    r = _run(services.store.get_receipts(thread_id))
    return jsonify({"thread_id": thread_id, **r.to_dict()})


if __name__ == "__main__":
    # Create tables (simple dev mode)
    init_db()
    app.run(host="0.0.0.0", port=5000, debug=True)
