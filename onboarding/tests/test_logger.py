import json
import logging

from onboarding.common.logger import JsonFormatter, LoggerAdapter, get_logger, log_execution_time, with_context


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def test_get_logger_nests_under_application_logger():
    assert get_logger("cache").name == "onboarding.cache"
    assert get_logger("onboarding.assessments").name == "onboarding.assessments"


def test_context_is_rendered_into_json():
    handler = _ListHandler()
    logger = logging.getLogger("onboarding.test_json")
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    try:
        adapter = with_context("onboarding.test_json", module_id="m1").with_context(variant="AR")
        adapter.info("Cache hit")
    finally:
        logger.removeHandler(handler)

    rendered = json.loads(JsonFormatter().format(handler.records[0]))
    assert rendered["message"] == "Cache hit"
    assert rendered["module_id"] == "m1"
    assert rendered["variant"] == "AR"
    assert isinstance(adapter, LoggerAdapter)


def test_log_execution_time_keeps_return_value():
    @log_execution_time()
    def add(a, b):
        return a + b

    assert add(2, 3) == 5


def test_store_modules_log_under_application_logger():
    from onboarding.assessments import memory_repository, sql_repository

    assert memory_repository.logger.name == "onboarding.assessments.memory_repository"
    assert sql_repository.logger.name == "onboarding.assessments.sql_repository"
