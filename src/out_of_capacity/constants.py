"""Constants for the out-of-capacity retry loop."""

# Defaults mirror the original shell tool. Override via env vars or --config.
DEFAULT_DELAY_SECONDS = 5
DEFAULT_MAX_RETRIES = 10
DEFAULT_ARCHIVE_THRESHOLD = 15000

DEFAULT_LOG_FILE = "tf_apply.log"
DEFAULT_RETRY_COUNT_FILE = "retry_count"

DEFAULT_DOMAINS = (1, 2, 3)
DEFAULT_DOMAIN_VAR = "availability_domain"
DEFAULT_TERRAFORM_BIN = "terraform"

# Archive name: tf_apply_<YYYYMMDDHHMM>.log.gz (minute granularity)
ARCHIVE_PREFIX = "tf_apply_"
ARCHIVE_SUFFIX = ".log.gz"
ARCHIVE_TIMESTAMP_FORMAT = "%Y%m%d%H%M"

# Exit codes
EXIT_SUCCESS = 0
EXIT_TERMINATED = 1

# Shell status for "command not found"
COMMAND_NOT_FOUND = 127

LOOP_SEPARATOR = "#" * 40
ATTEMPT_SEPARATOR = "=" * 40
