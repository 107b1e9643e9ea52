import logging

from src.epirecipes.logging_utils import log_config, setup_logging


def test_setup_logging_writes_file_and_replaces_handlers(tmp_path):
    log_file = tmp_path / "logs" / "run.log"
    setup_logging(level="DEBUG", log_file=log_file, console=True)
    root = setup_logging(level="DEBUG", log_file=log_file, console=True)
    try:
        assert len(root.handlers) == 2
        assert root.level == logging.DEBUG
        assert logging.getLogger("matplotlib").level == logging.WARNING

        log_config(logging.getLogger("recipes.test"), {"seed": 1, "beta": 0.05}, title="Config")
        for handler in root.handlers:
            handler.flush()
        text = log_file.read_text(encoding="utf-8")
        assert "Config: beta=0.05 seed=1" in text
        assert "| INFO | recipes.test |" in text
    finally:
        setup_logging(level="WARNING", console=False)


def test_unknown_level_falls_back_to_info():
    root = setup_logging(level="chatty", console=False)
    try:
        assert root.level == logging.INFO
        assert root.handlers == []
    finally:
        setup_logging(level="WARNING", console=False)
