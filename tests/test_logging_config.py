import logging

from src.logging_config import get_logger, setup_logging


def test_get_logger_namespaces_under_app_logger():
    assert get_logger("src.crud.crud_subscription").name == "ledger.src.crud.crud_subscription"
    assert get_logger("ledger.jobs").name == "ledger.jobs"
    assert get_logger().name == "ledger"


def test_setup_logging_writes_to_file(tmp_path):
    log_file = tmp_path / "logs" / "ledger.log"

    logger = setup_logging(app_log_level="DEBUG", third_party_log_level="ERROR", log_file=str(log_file))
    get_logger("src.crud.crud_subscription").debug("regenerated 3 entries")
    for handler in logger.handlers:
        handler.flush()

    assert logger.level == logging.DEBUG
    assert not logger.propagate
    assert logging.getLogger("sqlalchemy.engine").level == logging.ERROR
    assert "regenerated 3 entries" in log_file.read_text()

    setup_logging(app_log_level="INFO")
    assert len(logging.getLogger("ledger").handlers) == 1
