import logging


def configure_logging(level: str = "INFO") -> None:
    """Attach a single formatted stream handler to the root logger."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    if root.hasHandlers():
        return
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s')
    handler.setFormatter(formatter)
    root.addHandler(handler)
