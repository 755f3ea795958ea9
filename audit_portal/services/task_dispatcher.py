"""
Audit Portal
After-commit task dispatcher.

Runs best-effort side effects (notifications) only after the business
transaction has committed.  Delivery is at-most-once with no retry: a task
that raises is logged and dropped, and its failure never reaches the caller
of the operation that scheduled it.

Modes (``NOTIFICATION_DISPATCH_MODE``):
    thread  — tasks run on a background worker pool, each in its own app context
    inline  — tasks run synchronously in the caller's app context (testing)
"""

import atexit
import logging
import threading
from concurrent.futures import ThreadPoolExecutor

from flask import current_app, has_app_context

from audit_portal.models import db

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 4


class TaskDispatcher:
    """Hands callables to a worker pool once the current transaction is committed."""

    def __init__(self):
        self._executor: ThreadPoolExecutor | None = None
        self._lock = threading.Lock()
        self._workers = DEFAULT_WORKERS
        self._exit_hook_registered = False

    def init_app(self, app):
        self._workers = int(app.config.get("NOTIFICATION_WORKERS", DEFAULT_WORKERS))
        app.extensions["task_dispatcher"] = self
        # Pending notifications are drained before the interpreter exits
        if not self._exit_hook_registered:
            atexit.register(self.shutdown)
            self._exit_hook_registered = True

    # ── Public API ───────────────────────────────────────────────────────

    def dispatch(self, fn, *args, description: str = "", **kwargs) -> None:
        """Schedule ``fn(*args, **kwargs)``.  Never raises."""
        label = description or getattr(fn, "__name__", "task")
        try:
            if not has_app_context():
                logger.warning("Dropping task %s: no application context", label)
                return
            app = current_app._get_current_object()
            mode = app.config.get("NOTIFICATION_DISPATCH_MODE", "thread")
            if mode == "inline":
                self._run_inline(fn, args, kwargs, label)
            else:
                self._get_executor().submit(self._run_in_background, app, fn, args, kwargs, label)
        except Exception:
            logger.exception("Failed to dispatch task %s", label)

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=wait)
                self._executor = None

    # ── Internal ─────────────────────────────────────────────────────────

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._workers,
                    thread_name_prefix="audit-portal-task",
                )
            return self._executor

    @staticmethod
    def _run_inline(fn, args, kwargs, label):
        try:
            fn(*args, **kwargs)
        except Exception:
            logger.exception("Task %s failed (inline, not retried)", label)
            db.session.rollback()

    @staticmethod
    def _run_in_background(app, fn, args, kwargs, label):
        with app.app_context():
            try:
                fn(*args, **kwargs)
            except Exception:
                logger.exception("Task %s failed (background, not retried)", label)
                db.session.rollback()
            finally:
                db.session.remove()


dispatcher = TaskDispatcher()
