"""Log filters that keep rider data out of log output."""

import logging
import re


class PIIFilter(logging.Filter):
    """Masks contact details and coarsens coordinates in log messages.

    Positions are cut to three decimals (roughly 100 m) so logs still show the
    area of a pickup without pinning a rider's door.
    """

    EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+")
    PHONE_PATTERN = re.compile(r"\+?\d{2,3}[-.\s]?\d{3,4}[-.\s]?\d{3}[-.\s]?\d{3,4}")
    COORDINATE_PATTERN = re.compile(r"(-?\d{1,3}\.\d{3})\d+")

    def filter(self, record: logging.LogRecord) -> bool:
        if not isinstance(record.msg, str):
            return True
        msg = record.msg
        if "@" in msg:
            msg = self.EMAIL_PATTERN.sub("[EMAIL]", msg)
        if any(c.isdigit() for c in msg):
            msg = self.PHONE_PATTERN.sub("[PHONE]", msg)
            msg = self.COORDINATE_PATTERN.sub(r"\1", msg)
        record.msg = msg
        return True
