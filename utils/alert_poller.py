"""Fixed-interval threshold checks on a cancellable background thread."""
from __future__ import annotations

import threading
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import Industry
from utils.alert_engine import check_latest_sample


class AlertPoller:
    """Runs one alert check per industry every ``interval`` seconds until stopped.

    Use as a context manager to tie the loop to the lifetime of its consumer:

        with AlertPoller(app, interval=60):
            ...
    """

    def __init__(self, app, interval: Optional[float] = None, industry_ids: Optional[Iterable[int]] = None, notifier=None):
        self.app = app
        self.interval = float(interval if interval is not None else app.config.get("ALERT_POLL_INTERVAL_SECONDS", 60))
        self.industry_ids = list(industry_ids) if industry_ids else None
        self.notifier = notifier
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _industries(self) -> List[Industry]:
        query = db.session.query(Industry)
        if self.industry_ids:
            query = query.filter(Industry.id.in_(self.industry_ids))
        return query.order_by(Industry.id).all()

    def run_once(self) -> int:
        """Check every selected industry once; return the number of alerts inserted."""
        inserted = 0
        with self.app.app_context():
            try:
                industries = self._industries()
            except SQLAlchemyError:
                db.session.rollback()
                self.app.logger.exception("Alert poll could not load industries")
                return 0
            for industry in industries:
                inserted += len(check_latest_sample(db.session, industry, notifier=self.notifier))
        if inserted:
            self.app.logger.info("Alert poll tick complete", extra={"inserted": inserted})
        return inserted

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                self.app.logger.exception("Alert poll tick failed")
            self._stop_event.wait(self.interval)

    def start(self) -> "AlertPoller":
        if self.running:
            return self
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="alert-poller", daemon=True)
        self._thread.start()
        self.app.logger.info("Alert poller started", extra={"interval": self.interval})
        return self

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self.app.logger.info("Alert poller stopped")

    def wait(self) -> None:
        """Block until the poller is stopped from another thread."""
        while self.running:
            self._stop_event.wait(1.0)

    def __enter__(self) -> "AlertPoller":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
