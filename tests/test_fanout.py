import threading
import time

from kanboard_analytics.fanout import fan_out, first_error


def test_fan_out_preserves_order():
    def work(delay):
        time.sleep(delay / 100)
        return delay * 10

    outcomes = fan_out(work, [3, 0, 1], max_workers=3)
    assert [outcome.index for outcome in outcomes] == [0, 1, 2]
    assert [outcome.result for outcome in outcomes] == [30, 0, 10]
    assert first_error(outcomes) is None


def test_fan_out_runs_every_item_and_reports_first_failure():
    seen = []
    lock = threading.Lock()

    def work(item):
        with lock:
            seen.append(item)
        if item in ("b", "c"):
            raise RuntimeError(f"boom {item}")
        return item

    outcomes = fan_out(work, ["a", "b", "c", "d"], max_workers=2)
    assert sorted(seen) == ["a", "b", "c", "d"]
    assert [outcome.ok for outcome in outcomes] == [True, False, False, True]
    assert str(first_error(outcomes)) == "boom b"


def test_fan_out_empty():
    assert fan_out(lambda item: item, []) == []
