"""Host platform, filesystem and subprocess helpers."""

from vvrelease.platform.detection import OsFamily, detect_os_family
from vvrelease.platform.files import atomic_write_text, copy_no_clobber, reset_dir
from vvrelease.platform.process import ProcessError, format_command, run, run_logged

__all__ = [
    "OsFamily",
    "detect_os_family",
    "atomic_write_text",
    "copy_no_clobber",
    "reset_dir",
    "ProcessError",
    "format_command",
    "run",
    "run_logged",
]
