import json
import logging

from logger_config import setup_logging


def test_setup_logging_writes_json_with_extra_fields(capsys):
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    try:
        setup_logging(logging.INFO)
        setup_logging(logging.INFO)
        added = [h for h in root.handlers if h not in before]
        assert len(added) == 1

        logging.getLogger("timeline").info(
            "commit done", extra={"post_id": "abc", "version_id": "123"}
        )

        lines = [line for line in capsys.readouterr().out.splitlines() if line]
        record = json.loads(lines[-1])
        assert record["message"] == "commit done"
        assert record["level"] == "INFO"
        assert record["logger"] == "timeline"
        assert record["service"] == "gittimeline"
        assert record["post_id"] == "abc"
        assert record["version_id"] == "123"
    finally:
        for handler in list(root.handlers):
            if handler not in before:
                root.removeHandler(handler)
        root.setLevel(level)
