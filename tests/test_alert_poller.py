import time
from datetime import datetime

from extensions import db
from models import Alert
from utils.alert_poller import AlertPoller

NOON = datetime(2024, 5, 1, 12, 0, 0)


def _wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return False


def test_run_once_counts_inserted_alerts(app, make_industry, add_sample):
    first = make_industry("TX-1")
    second = make_industry("CH-1", industry_type="Chemical")
    add_sample(first, NOON, ph=9.4)
    add_sample(second, NOON, turbidity=9, dissolved_oxygen=2)

    poller = AlertPoller(app, interval=60)

    assert poller.run_once() == 3
    assert poller.run_once() == 0


def test_run_once_limits_to_selected_industries(app, make_industry, add_sample):
    first = make_industry("TX-1")
    second = make_industry("CH-1", industry_type="Chemical")
    add_sample(first, NOON, ph=9.4)
    add_sample(second, NOON, ph=3.0)

    assert AlertPoller(app, industry_ids=[second]).run_once() == 1
    with app.app_context():
        assert [a.industry_code for a in db.session.query(Alert).all()] == ["CH-1"]


def test_run_once_sends_warning_when_notifier_given(app, make_industry, make_user, add_sample, notifier):
    industry_id = make_industry("TX-1", owner_id=make_user("owner@textiles.co.in"))
    add_sample(industry_id, NOON, ph=9.4)

    AlertPoller(app, notifier=notifier).run_once()

    assert [m["to"] for m in notifier.sent] == ["owner@textiles.co.in"]


def test_background_loop_records_alerts(app, make_industry, add_sample):
    industry_id = make_industry("TX-1")
    add_sample(industry_id, NOON, ph=9.4)

    with AlertPoller(app, interval=0.05) as poller:
        assert poller.running
        time.sleep(0.3)

    assert not poller.running
    with app.app_context():
        assert db.session.query(Alert).count() == 1


def test_stop_cancels_pending_wait(app):
    poller = AlertPoller(app, interval=60).start()
    time.sleep(0.1)

    started = time.monotonic()
    poller.stop()

    assert time.monotonic() - started < 5
    assert not poller.running


def test_failing_tick_does_not_end_loop(app):
    poller = AlertPoller(app, interval=0.01)
    calls = []

    def exploding_tick():
        calls.append(1)
        raise RuntimeError("database unavailable")

    poller.run_once = exploding_tick
    poller.start()
    try:
        assert _wait_for(lambda: len(calls) >= 3)
    finally:
        poller.stop()
