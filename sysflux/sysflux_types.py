#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
import configargparse
import humanfriendly


def positive_integer(value_str: str) -> int:
    value = int(value_str)
    if value <= 0:
        raise configargparse.ArgumentTypeError("invalid positive integer value: {!r}".format(value))
    return value


def positive_timespan(value_str: str) -> float:
    """
    Parses human friendly timespans such as "5m", "30s" or "1h", returning seconds. A bare number means seconds.
    """
    try:
        value = humanfriendly.parse_timespan(value_str)
    except humanfriendly.InvalidTimespan as e:
        raise configargparse.ArgumentTypeError(str(e)) from e
    if value <= 0:
        raise configargparse.ArgumentTypeError("invalid positive timespan: {!r}".format(value_str))
    return value
