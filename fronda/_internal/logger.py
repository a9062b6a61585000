import logging

logger = logging.getLogger("fronda")
logger.setLevel(logging.WARNING)

formatter = logging.Formatter(
    "\033[92m%(levelname)s\033[0m\t(%(asctime)s) [fronda] %(message)s",
    datefmt="%H:%M:%S",
)

handler = logging.StreamHandler()
handler.setFormatter(formatter)
logger.addHandler(handler)
logger.propagate = False


def indent(level: int) -> str:
    """
    Returns the tree-like prefix used to align log lines of nested passes.
    """
    return "|   " * (level - 1) + ("|---" if level > 0 else "")
