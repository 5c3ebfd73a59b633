"""Module defining various global constants."""

# saxenv version
VERSION = "1.0.0"

# RPC protocol
# The major version must be identical on client and server.
PROTOCOL_VERSION = "1.0.0"

# Special exit code for when saxenv itself fails.
SAXENV_ERROR_CODE = 254

# Root values with this prefix are interpreted as object store URLs.
REMOTE_URL_PREFIX = "s3://"

# Internally, "s3://bucket/dir" root values are converted to "/s3/bucket/dir" paths so
# that they can be handled uniformly as file paths.
REMOTE_PATH_PREFIX = "/s3/"

# The object store has no real directories, so an empty placeholder object in the
# innermost key prefix stands in for one.
METADATA_FILE = "METADATA"

# Environment variable consulted for the root when the flag is not set, e.g. when the
# environment is embedded in a model server.
ROOT_ENV_VAR = "SAX_ROOT"

# Name of the root directory used while running under a test harness.
TEST_ROOT_NAME = "sax-test-root"

# Permission bits for newly created local files and directories (before umask).
FILE_MODE = 0o644
DIR_MODE = 0o777
