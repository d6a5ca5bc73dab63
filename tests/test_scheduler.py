from scheduler.runner import Interval, run_daemon


def test_run_daemon_runs_and_sleeps_between_jobs():
    runs, sleeps = [], []
    n = run_daemon(lambda: runs.append(1), interval_sec=60, jitter_sec=0,
                   max_runs=3, sleep=sleeps.append)
    assert n == 3
    assert len(runs) == 3
    assert sleeps == [60, 60]


def test_run_daemon_survives_failing_job():
    calls = {"n": 0}

    def job():
        calls["n"] += 1
        if calls["n"] == 1:
            raise RuntimeError("fetch failed")

    assert run_daemon(job, interval_sec=5, max_runs=2, sleep=lambda s: None) == 2
    assert calls["n"] == 2


def test_run_daemon_stops_on_ctrl_c():
    def job():
        raise KeyboardInterrupt

    assert run_daemon(job, interval_sec=5, sleep=lambda s: None) == 0


def test_interval_due():
    iv = Interval(10)
    assert iv.due(0)
    iv.mark(0)
    assert not iv.due(9.9)
    assert iv.due(10)


def test_interval_due_with_slack():
    iv = Interval(600)
    iv.mark(0)
    assert not iv.due(570)
    assert iv.due(570, slack=30)
