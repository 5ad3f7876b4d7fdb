"""
Logging configuration for the test environment

Harness logs go through the root logger. Output read from managed components
(envoy, configmanager, backends) is logged under COMPONENT_NAMESPACE and
printed prefixed with the component name instead of a source location.
"""

import logging
import sys

COMPONENT_NAMESPACE = "apiproxy_testenv.component"

HARNESS_FORMAT = "%(asctime)s - %(levelname)-8s %(name)s %(filename)s:%(lineno)d %(message)s"
COMPONENT_FORMAT = "%(asctime)s - [%(component)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ComponentNameFilter(logging.Filter):
    """Sets record.component to the last part of the logger name"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.component = record.name.rpartition(".")[2]
        return True


def _replace_handlers(logger: logging.Logger, handler: logging.Handler) -> None:
    for existing in logger.handlers[:]:
        logger.removeHandler(existing)
    logger.addHandler(handler)


def setup_logging(level: int = logging.INFO, component_output: bool = True) -> None:
    """
    Configure harness and component output logging

    Args:
        level: Logging level of the harness (default: INFO)
        component_output: Print the output of managed components
    """
    harness_handler = logging.StreamHandler(sys.stdout)
    harness_handler.setLevel(level)
    harness_handler.setFormatter(logging.Formatter(fmt=HARNESS_FORMAT, datefmt=DATE_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    _replace_handlers(root_logger, harness_handler)

    component_handler = logging.StreamHandler(sys.stdout)
    component_handler.addFilter(ComponentNameFilter())
    component_handler.setFormatter(logging.Formatter(fmt=COMPONENT_FORMAT, datefmt=DATE_FORMAT))

    component_logger = logging.getLogger(COMPONENT_NAMESPACE)
    component_logger.propagate = False
    component_logger.setLevel(logging.INFO if component_output else logging.CRITICAL + 1)
    _replace_handlers(component_logger, component_handler)


def get_component_logger(component: str) -> logging.Logger:
    """
    Get the logger that receives a managed component's output

    Args:
        component: Component name (e.g. "envoy", "configmanager")
    """
    return logging.getLogger(f"{COMPONENT_NAMESPACE}.{component}")
