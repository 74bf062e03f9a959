import logging
from datetime import datetime, timedelta

from fables_autosplit.debug.trace import DiagnosticLog, MemorySink, NullSink, setup_logging


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def test_lines_are_timestamped(tmp_path):
    clock = Clock(datetime(2026, 10, 19, 20, 14, 3))
    sink = DiagnosticLog(tmp_path / "log.txt", clock=clock)
    sink.write("STARTED")
    clock.advance(seconds=2)
    sink.write("LOGIC RESET")

    lines = (tmp_path / "log.txt").read_text(encoding="utf-8").splitlines()
    assert lines == [
        "[2026-10-19 20:14:03] STARTED",
        "[2026-10-19 20:14:05] LOGIC RESET",
    ]


def test_missing_parent_directory_is_created(tmp_path):
    path = tmp_path / "nested" / "dir" / "log.txt"
    DiagnosticLog(path, clock=Clock(datetime(2026, 1, 1))).write("hello")
    assert path.read_text(encoding="utf-8").endswith("hello\n")


def test_old_log_is_recreated(tmp_path):
    path = tmp_path / "log.txt"
    path.write_text("[2026-08-01 10:00:00] ancient\n", encoding="utf-8")

    DiagnosticLog(path, clock=Clock(datetime(2026, 10, 19, 9, 0, 0))).write("fresh")
    assert path.read_text(encoding="utf-8") == "[2026-10-19 09:00:00] fresh\n"


def test_recent_log_is_appended_to(tmp_path):
    path = tmp_path / "log.txt"
    path.write_text("[2026-10-01 10:00:00] earlier\n", encoding="utf-8")

    DiagnosticLog(path, clock=Clock(datetime(2026, 10, 19, 9, 0, 0))).write("later")
    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines == ["[2026-10-01 10:00:00] earlier", "[2026-10-19 09:00:00] later"]


def test_unparseable_log_is_recreated(tmp_path):
    path = tmp_path / "log.txt"
    path.write_text("not a diagnostic log\n", encoding="utf-8")

    DiagnosticLog(path, clock=Clock(datetime(2026, 10, 19))).write("x")
    assert path.read_text(encoding="utf-8") == "[2026-10-19 00:00:00] x\n"


def test_age_is_rechecked_on_a_new_day(tmp_path):
    path = tmp_path / "log.txt"
    clock = Clock(datetime(2026, 10, 1, 12, 0, 0))
    sink = DiagnosticLog(path, max_age_days=30, clock=clock)
    sink.write("first")

    clock.advance(days=29)
    sink.write("still young")
    assert len(path.read_text(encoding="utf-8").splitlines()) == 2

    clock.advance(days=2)
    sink.write("after a month")
    assert path.read_text(encoding="utf-8").splitlines() == ["[2026-11-01 12:00:00] after a month"]


def test_unwritable_path_does_not_raise(tmp_path, caplog):
    blocker = tmp_path / "file"
    blocker.write_text("")
    sink = DiagnosticLog(blocker / "log.txt", clock=Clock(datetime(2026, 10, 19)))
    with caplog.at_level(logging.WARNING, logger="fables_autosplit"):
        sink.write("lost")
    assert "Could not write diagnostic log" in caplog.text


def test_null_and_memory_sinks():
    NullSink().write("ignored")
    sink = MemorySink()
    sink.write("a")
    sink.write("b")
    assert sink.messages == ["a", "b"]


def test_setup_logging_replaces_handlers(tmp_path):
    logger = logging.getLogger("fables_autosplit")
    log_file = tmp_path / "debug.log"
    try:
        setup_logging(logging.DEBUG, log_file)
        setup_logging(logging.DEBUG, log_file)
        assert len(logger.handlers) == 2
        assert logger.level == logging.DEBUG

        logging.getLogger("fables_autosplit.memory").debug("bound to pid %d", 42)
        for handler in logger.handlers:
            handler.flush()
        assert "bound to pid 42" in log_file.read_text()
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.setLevel(logging.NOTSET)
