import logging

from cityguard_api.app.core.logging_config import setup_logging


def test_log_file_keeps_arabic_text(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    root.handlers = []
    logfile = tmp_path / "logs" / "cityguard.log"
    try:
        setup_logging("info", str(logfile))
        assert len(root.handlers) == 2
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

        setup_logging("debug", str(logfile))
        assert len(root.handlers) == 2

        logging.getLogger("cityguard_api.test").info("تم نشر الإعلان")
        for handler in root.handlers:
            handler.flush()
        assert "تم نشر الإعلان" in logfile.read_text(encoding="utf-8")
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers = saved_handlers
        root.setLevel(saved_level)
