from concurrent.futures import Executor, Future
from typing import Any, Callable, Optional

from flask import Flask, current_app, has_app_context

from versioned_cms.extensions import db


class PostCommitTasks:
    """
    Best-effort work issued after a primary transaction has committed.

    A failing task is logged and swallowed: it never unwinds or retries the
    mutation that scheduled it. ``run`` executes inline; ``submit`` hands the
    task to ``executor`` when one is configured and falls back to ``run``.
    """

    def __init__(self, executor: Optional[Executor] = None):
        self._executor = executor

    def run(self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except Exception as exc:
            db.session.rollback()
            current_app.logger.warning("Post-commit task %s failed: %s", name, exc, exc_info=True)
            return None

    def submit(self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Optional[Future]:
        if self._executor is None or not has_app_context():
            self.run(name, fn, *args, **kwargs)
            return None

        app = current_app._get_current_object()
        return self._executor.submit(self._run_in_context, app, name, fn, *args, **kwargs)

    def _run_in_context(self, app: Flask, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        with app.app_context():
            try:
                return self.run(name, fn, *args, **kwargs)
            finally:
                db.session.remove()

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
