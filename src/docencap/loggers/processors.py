import contextlib
import datetime
from pathlib import Path
from typing import Optional

import pytz
from structlog.types import EventDict


class PathPrettifier:
    """
    A processor to show paths relative to a base directory.

    Args:
            base_dir (Optional[Path]): Directory paths are made relative to. Defaults to the current working directory.
    """

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self.base_dir = base_dir or Path.cwd()

    def __call__(
        self, _: object, __: object, event_dict: EventDict
    ) -> EventDict:
        if not isinstance(event_dict, dict):
            msg = "event_dict must be a dictionary"
            raise TypeError(msg)

        for key, path in event_dict.items():
            if isinstance(path, Path):
                with contextlib.suppress(ValueError):
                    event_dict[key] = str(path.relative_to(self.base_dir))
        return event_dict


class UIDShortener:
    """
    A processor to shorten long DICOM UIDs in console output.

    Only keys ending in ``uid`` (case-insensitive) are touched, the last
    ``keep`` characters are shown after an ellipsis.

    Args:
            keep (int): Number of trailing characters to keep. 0 disables shortening.
    """

    def __init__(self, keep: int = 12) -> None:
        self.keep = keep

    def __call__(
        self, _: object, __: object, event_dict: EventDict
    ) -> EventDict:
        if self.keep <= 0:
            return event_dict
        for key, value in event_dict.items():
            if (
                key.lower().endswith("uid")
                and isinstance(value, str)
                and len(value) > self.keep
            ):
                event_dict[key] = f"...{value[-self.keep :]}"
        return event_dict


class CallPrettifier:
    """
    A processor to format call information in the event dictionary.

    Args:
            concise (bool): Whether to use a concise format for call information. Defaults to True.
    """

    def __init__(self, concise: bool = True) -> None:
        self.concise = concise

    def __call__(
        self, _: object, __: object, event_dict: EventDict
    ) -> EventDict:
        if not isinstance(event_dict, dict):
            msg = "event_dict must be a dictionary"
            raise TypeError(msg)

        call = {
            "module": event_dict.pop("module", ""),
            "func_name": event_dict.pop("func_name", ""),
            "lineno": event_dict.pop("lineno", ""),
        }

        event_dict["call"] = (
            f"{call['module']}.{call['func_name']}:{call['lineno']}"
            if self.concise
            else call
        )
        return event_dict


class ZonedTimeStamper:
    """
    A processor to add a timestamp in a named time zone to the event dictionary.

    Args:
            fmt (str): The format string for the timestamp. Defaults to "%Y-%m-%dT%H:%M:%S%z".
            tz (str): Olson time zone name. Defaults to "UTC".
    """

    def __init__(self, fmt: str = "%Y-%m-%dT%H:%M:%S%z", tz: str = "UTC") -> None:
        self.fmt = fmt
        self.tz = pytz.timezone(tz)

    def __call__(
        self, _: object, __: object, event_dict: EventDict
    ) -> EventDict:
        if not isinstance(event_dict, dict):
            msg = "event_dict must be a dictionary"
            raise TypeError(msg)

        now = datetime.datetime.now(self.tz)
        event_dict["timestamp"] = now.strftime(self.fmt)
        return event_dict
