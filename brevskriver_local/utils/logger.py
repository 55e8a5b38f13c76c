"""
Logging configuration for Brevskriver Local
"""

import logging
import sys
from typing import Optional
from pathlib import Path


# Global flag to prevent multiple logging setups
_logging_configured = False

def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    verbose: bool = False,
    force_reconfigure: bool = False
) -> logging.Logger:
    """
    Set up logging configuration for Brevskriver.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file path
        verbose: Enable verbose logging
        force_reconfigure: Force reconfiguration even if already configured

    Returns:
        Configured logger instance
    """
    global _logging_configured

    if _logging_configured and not force_reconfigure:
        logger = logging.getLogger("brevskriver")
        logger.debug("Logging already configured, skipping setup")
        return logger

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    if verbose:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s'
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Letter output goes to stdout, so diagnostics stay on stderr
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        try:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        except OSError as e:
            print(f"Warning: Could not set up file logging: {e}", file=sys.stderr)

    logger = logging.getLogger("brevskriver")
    logger.info(f"Logging initialized at {level} level")

    if log_file:
        logger.info(f"Logging to file: {log_file}")

    _logging_configured = True

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a specific component.

    Args:
        name: Logger name (will be prefixed with 'brevskriver.')

    Returns:
        Logger instance
    """
    return logging.getLogger(f"brevskriver.{name}")


def log_session_start(session_id: str, config: dict) -> None:
    """
    Log the start of a drafting session.

    Args:
        session_id: Unique session identifier
        config: Session configuration
    """
    logger = get_logger("session")
    logger.info(f"Starting session {session_id}")
    logger.info(f"Model: {config.get('llm_model')} at {config.get('llm_base_url')}")
    logger.info(f"Data directory: {config.get('data_dir')}")


def log_generation_start(mode: str, tone: str, input_language: str) -> None:
    """
    Log the start of a letter generation.

    Args:
        mode: Generation mode ('model' or 'test')
        tone: Letter tone
        input_language: Language of the user's description
    """
    logger = get_logger("generation")
    logger.info(f"Generating letter ({mode}), tone={tone}, input_language={input_language}")


def log_generation_complete(mode: str, status: str, duration: float) -> None:
    """
    Log the completion of a letter generation.

    Args:
        mode: Generation mode
        status: Outcome (ready, error, invalid, rejected)
        duration: Duration in seconds
    """
    logger = get_logger("generation")
    logger.info(f"Generation ({mode}) {status} in {duration:.2f} seconds")


def log_error(component: str, error: Exception, context: Optional[dict] = None) -> None:
    """
    Log error with context information.

    Args:
        component: Component where error occurred
        error: Exception instance
        context: Optional context information
    """
    logger = get_logger("error")
    logger.error(f"Error in {component}: {str(error)}")

    if context:
        logger.error(f"Context: {context}")

    logger.debug("Exception details:", exc_info=True)
