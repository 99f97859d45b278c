import logging
from modhealth_core.logging_config import RedactionFilter, configure_logging


def _record(msg, *args):
    return logging.LogRecord("modhealth_api", logging.INFO, __file__, 1, msg, args, None)


def test_redacts_bearer_and_query_tokens():
    f = RedactionFilter()
    rec = _record("Authorization: Bearer abc.def.ghi and /ws?token=secret123&x=1")
    assert f.filter(rec)
    assert "abc.def.ghi" not in rec.msg
    assert "secret123" not in rec.msg
    assert "token=[REDACTED]" in rec.msg


def test_redacts_formatted_args():
    f = RedactionFilter()
    rec = _record("payload=%s", '{"access_token": "xyz789"}')
    f.filter(rec)
    assert rec.args is None
    assert "xyz789" not in rec.getMessage()


def test_configure_logging_from_template(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cfg = tmp_path / "logging.ini"
    cfg.write_text(
        "[loggers]\nkeys=root\n\n[handlers]\nkeys=console\n\n[formatters]\nkeys=plain\n\n"
        "[logger_root]\nlevel=__LOG_LEVEL__\nhandlers=console\n\n"
        "[handler_console]\nclass=StreamHandler\nlevel=__LOG_LEVEL__\nformatter=plain\nargs=(sys.stderr,)\n\n"
        "[formatter_plain]\nformat=%(levelname)s %(message)s\n"
    )
    configure_logging(level="warning", config_file=cfg)
    root = logging.getLogger()
    assert root.level == logging.WARNING
    assert any(isinstance(flt, RedactionFilter) for h in root.handlers for flt in h.filters)
    assert (tmp_path / "logs").is_dir()
    assert list((tmp_path / "logs").iterdir()) == []
