"""
Isolated OCR execution context.

The pipeline lives behind a single-consumer request queue so model
sessions are owned by one thread and requests run strictly in order.

Two transports share one message contract (``handle_message``):
- OCRWorker: in-process thread; each request returns a Future
- serve()/main(): persistent process reading JSON-line requests from
  stdin and writing JSON-line responses to stdout
"""

import base64
import json
import logging
import queue
import sys
import threading
import uuid
from concurrent.futures import Future
from typing import Any, Callable, Dict, Optional

from .libs.onnx_ocr import OCRPipeline

logger = logging.getLogger(__name__)

INIT = "INIT"
PREPROCESS = "PREPROCESS"
RECOGNIZE = "RECOGNIZE"
SET_PARAMS = "SET_PARAMS"
ERROR = "ERROR"
QUIT = "QUIT"

_STOP = object()


# ---------------------------------------------------------------------------
# Request handlers (run inside the worker context)
# ---------------------------------------------------------------------------

def _handle_init(pipeline: OCRPipeline, payload):
    pipeline.init()
    return None


def _handle_set_params(pipeline: OCRPipeline, payload):
    params = (payload or {}).get("params", payload)
    return pipeline.set_params(params)


def _handle_preprocess(pipeline: OCRPipeline, payload):
    return pipeline.preprocess_only(payload["image"], payload.get("params"))


def _handle_recognize(pipeline: OCRPipeline, payload):
    return pipeline.recognize(payload["image"], payload.get("params"))


HANDLERS: Dict[str, Callable[[OCRPipeline, Any], Any]] = {
    INIT: _handle_init,
    SET_PARAMS: _handle_set_params,
    PREPROCESS: _handle_preprocess,
    RECOGNIZE: _handle_recognize,
}


def _decode_image(image):
    """JSON carries images as base64-encoded file bytes."""
    if isinstance(image, str):
        return base64.b64decode(image)
    return image


def _encode_payload(message_type: str, result) -> Any:
    if result is None:
        return None
    if message_type == PREPROCESS:
        with result:
            return {
                "width": result.width,
                "height": result.height,
                "png": base64.b64encode(result.to_png_bytes()).decode("ascii"),
            }
    return result.to_dict()


def handle_message(pipeline: OCRPipeline, message: Dict[str, Any]) -> Dict[str, Any]:
    """Process one request message and build its response.

    Args:
        pipeline: Pipeline owned by the calling context
        message: {"type": ..., "payload": ..., "messageId": ...}

    Returns:
        {"type": "<TYPE>_COMPLETE", "payload": ..., "messageId": ...} or
        {"type": "ERROR", "error": ..., "errorType": ..., "messageId": ...}
    """
    message_id = message.get("messageId")
    message_type = message.get("type")
    try:
        handler = HANDLERS.get(message_type)
        if handler is None:
            raise ValueError(f"Unknown message type: {message_type!r}")

        payload = message.get("payload")
        if message_type in (PREPROCESS, RECOGNIZE):
            if not isinstance(payload, dict) or "image" not in payload:
                raise ValueError(f"{message_type} requires a payload with an 'image'")
            payload = dict(payload, image=_decode_image(payload["image"]))

        result = handler(pipeline, payload)
        response = {"type": f"{message_type}_COMPLETE", "messageId": message_id}
        encoded = _encode_payload(message_type, result)
        if encoded is not None:
            response["payload"] = encoded
        return response
    except Exception as e:
        logger.exception("Request %s (%s) failed", message_id, message_type)
        return {
            "type": ERROR,
            "error": str(e) or e.__class__.__name__,
            "errorType": e.__class__.__name__,
            "messageId": message_id,
        }


# ---------------------------------------------------------------------------
# In-process thread worker
# ---------------------------------------------------------------------------

class OCRWorker:
    """Runs an OCRPipeline on a dedicated thread.

    Requests are queued and processed one at a time. Each request is
    answered through a Future: the handler's return value on success
    (``OcrResult``, ``ImageBuffer``, ``OcrParams`` or None), the raised
    exception on failure.

    Usage:
        with OCRWorker(OCRPipeline()) as worker:
            worker.init().result()
            result = worker.recognize(image_bytes).result()
    """

    def __init__(self, pipeline: Optional[OCRPipeline] = None, name: str = "ocr-worker"):
        self._pipeline = pipeline if pipeline is not None else OCRPipeline()
        self._queue: "queue.Queue" = queue.Queue()
        self._pending: Dict[str, Future] = {}
        self._pending_lock = threading.Lock()
        self._closed = False
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    def submit(self, message_type: str, payload: Any = None, message_id: Optional[str] = None) -> Future:
        """Queue a request.

        Args:
            message_type: INIT, PREPROCESS, RECOGNIZE or SET_PARAMS
            payload: Request payload (see ``handle_message``)
            message_id: Correlation id; generated when omitted

        Returns:
            Future resolved when the request has been processed
        """
        if message_type not in HANDLERS:
            raise ValueError(f"Unknown message type: {message_type!r}")
        if message_id is None:
            message_id = uuid.uuid4().hex

        future: Future = Future()
        with self._pending_lock:
            if self._closed:
                raise RuntimeError("OCRWorker is closed")
            if message_id in self._pending:
                raise ValueError(f"Request {message_id!r} is already in flight")
            self._pending[message_id] = future
            self._queue.put((message_id, message_type, payload))
        return future

    def init(self, message_id: Optional[str] = None) -> Future:
        return self.submit(INIT, None, message_id)

    def set_params(self, params, message_id: Optional[str] = None) -> Future:
        return self.submit(SET_PARAMS, {"params": params}, message_id)

    def preprocess(self, image, params=None, message_id: Optional[str] = None) -> Future:
        return self.submit(PREPROCESS, {"image": image, "params": params}, message_id)

    def recognize(self, image, params=None, message_id: Optional[str] = None) -> Future:
        return self.submit(RECOGNIZE, {"image": image, "params": params}, message_id)

    def _run(self):
        while True:
            item = self._queue.get()
            if item is _STOP:
                break

            message_id, message_type, payload = item
            with self._pending_lock:
                future = self._pending.get(message_id)
            if future is None or not future.set_running_or_notify_cancel():
                self._forget(message_id)
                continue

            try:
                result = HANDLERS[message_type](self._pipeline, payload)
            except BaseException as e:
                logger.debug("Request %s (%s) failed: %s", message_id, message_type, e)
                self._forget(message_id)
                future.set_exception(e)
                if isinstance(e, (SystemExit, KeyboardInterrupt)):
                    self._abandon_pending(e)
                    raise
            else:
                self._forget(message_id)
                future.set_result(result)

    def _forget(self, message_id: str):
        with self._pending_lock:
            self._pending.pop(message_id, None)

    def _abandon_pending(self, cause: BaseException):
        """Close the worker and fail every request still queued."""
        with self._pending_lock:
            self._closed = True
            pending = list(self._pending.values())
            self._pending.clear()
        for future in pending:
            if future.set_running_or_notify_cancel():
                error = RuntimeError(f"OCR worker stopped: {cause!r}")
                error.__cause__ = cause
                future.set_exception(error)

    def close(self, timeout: Optional[float] = None):
        """Stop accepting requests and wait for queued work to finish."""
        with self._pending_lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_STOP)
        self._thread.join(timeout)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


# ---------------------------------------------------------------------------
# JSON-lines process transport
# ---------------------------------------------------------------------------

def _respond(stream, data):
    """Write a JSON-line response and flush."""
    stream.write(json.dumps(data, ensure_ascii=False) + "\n")
    stream.flush()


def serve(pipeline: OCRPipeline, stdin=None, stdout=None) -> None:
    """Answer JSON-line requests until EOF or a QUIT message."""
    stdin = stdin if stdin is not None else sys.stdin
    stdout = stdout if stdout is not None else sys.stdout

    for line in stdin:
        line = line.strip()
        if not line:
            continue

        try:
            message = json.loads(line)
        except json.JSONDecodeError as e:
            _respond(stdout, {
                "type": ERROR,
                "error": f"Invalid JSON: {e}",
                "errorType": "JSONDecodeError",
                "messageId": None,
            })
            continue

        if not isinstance(message, dict):
            _respond(stdout, {
                "type": ERROR,
                "error": "Request must be a JSON object",
                "errorType": "ValueError",
                "messageId": None,
            })
            continue

        if message.get("type") == QUIT:
            _respond(stdout, {"type": "QUIT_COMPLETE", "messageId": message.get("messageId")})
            break

        _respond(stdout, handle_message(pipeline, message))


def main():
    """Entry point for the ``receipt-ocr-worker`` process."""
    logging.basicConfig(
        level=logging.WARNING,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    serve(OCRPipeline())
    return 0


if __name__ == "__main__":
    sys.exit(main())
