import datetime as dt


def utcnow() -> dt.datetime:
    # naive UTC: sqlite drops tzinfo, so every stored timestamp is naive
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)
