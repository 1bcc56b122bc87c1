"""Rich, structured console output for cadence.

Usage:
    from cadence.console import logger

    logger.info("Loading llama3_2_1b...")
    logger.stream("generated text")
    logger.stats([["Tokens Count", "128"]])
    logger.key_value({"preset": "tiny_llama", "device": "cpu"})
"""
from cadence.console.logger import Logger, get_logger

# Module-level singleton for convenient import
logger = get_logger()

__all__ = ["Logger", "get_logger", "logger"]
