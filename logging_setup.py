import logging
import sys


class _WerkzeugNoiseFilter(logging.Filter):
    """Keep per-request access lines from drowning app logs below WARNING."""

    def filter(self, record):
        if record.name.startswith("werkzeug"):
            return record.levelno >= logging.WARNING
        return True


def setup_logging(level="INFO"):
    """
    Configure root logging with a single console handler.

    Safe to call more than once (e.g. one app per test): existing
    handlers are replaced, not duplicated.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    for h in list(root.handlers):
        if getattr(h, "_tracker_handler", False):
            root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(level)
    ch.setFormatter(fmt)
    ch.addFilter(_WerkzeugNoiseFilter())
    ch._tracker_handler = True
    root.addHandler(ch)

    # SQLAlchemy echoes every statement at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
