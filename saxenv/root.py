"""
Module that determines the root directory where all cells store their metadata.

The root is either a local directory (e.g. /home/user/sax-root) or an object store URL
(e.g. s3://bucket/sax-root), which is converted to its canonical "/s3/..." form.
"""

import os
import sys
import tempfile
from typing import Callable, Mapping, NoReturn, Optional

from saxenv.constants import ROOT_ENV_VAR, SAXENV_ERROR_CODE, TEST_ROOT_NAME
from saxenv.filesystem.common import to_internal
from saxenv.logger import log

TEST_ROOT = os.path.join(tempfile.gettempdir(), TEST_ROOT_NAME)


def running_under_test() -> bool:
    """Check if the process is a test run, in which case a scratch root is used."""
    return "pytest" in sys.modules or "_test" in os.path.basename(sys.argv[0])


def _exit_missing_root() -> NoReturn:
    sys.exit(SAXENV_ERROR_CODE)


def resolve_root(
    flag_value: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    under_test: Optional[bool] = None,
    fatal: Callable[[], NoReturn] = _exit_missing_root,
) -> str:
    """
    Resolve the root directory, in order of precedence from:

    1. The scratch test root if running under a test harness
    2. The --sax_root command-line flag
    3. The SAX_ROOT environment variable

    No root is a fatal error since nothing can be done without one. The process exits
    unless a different fatal() handler is given.
    """
    if under_test is None:
        under_test = running_under_test()
    if environ is None:
        environ = os.environ

    if under_test:
        return TEST_ROOT

    if flag_value:
        return to_internal(flag_value)

    env_value = environ.get(ROOT_ENV_VAR, "")
    if env_value:
        return to_internal(env_value)

    log.error(
        f"neither the --sax_root flag nor the {ROOT_ENV_VAR} environment variable is set"
    )
    fatal()
