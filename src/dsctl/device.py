import logging

logger = logging.getLogger(__name__)


class ReadTimeout(TimeoutError):
    pass


def open_device(path: str):
    """Opens a `/dev/hidraw#` node with hidapi."""
    # Importing hid loads the system hidapi library
    import hid

    logger.debug(f"Opening '{path}'.")
    return hid.Device(path=path.encode())


def read_report(dev, size: int, timeout: int) -> bytes:
    """Reads a report, raising `ReadTimeout` if none arrived within
    `timeout` milliseconds."""
    rep = dev.read(size, timeout)
    if not rep:
        raise ReadTimeout(f"no report within {timeout}ms")
    return rep
