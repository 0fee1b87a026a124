import logging
import os
import sys

logger = logging.getLogger(__name__)


class NewLineFormatter(logging.Formatter):
    """Aligns newlines during multiline prints."""

    def format(self, record):
        msg = super().format(record)
        if (idx := msg.find("|||")) != -1:
            preamble = msg[:idx]
            msg = msg.replace("|||", "").replace("\n", "\n" + (" " * len(preamble)))
        return msg


def setup_logger(debug: bool = False):
    debug = debug or bool(os.environ.get("DSCTL_DEBUG", False))
    # Do not print time when running as a systemd service
    is_systemd = bool(os.environ.get("JOURNAL_STREAM", None))

    if is_systemd or not sys.stderr.isatty():
        handler = logging.StreamHandler()
        handler.setFormatter(
            NewLineFormatter(
                "%(levelname)-8s|||%(message)s"
                if is_systemd
                else "%(asctime)s %(module)-8s %(levelname)-8s|||%(message)s",
                datefmt="%m-%d %H:%M",
            )
        )
    else:
        from rich.logging import RichHandler
        from rich.traceback import install

        install()
        handler = RichHandler(show_path=debug)

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        datefmt="[%H:%M]",
        format="%(message)s",
        handlers=[handler],
    )
    logger.debug("Debug logging enabled.")
