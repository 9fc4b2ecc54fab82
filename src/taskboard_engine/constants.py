STATE_DIR_NAME = ".taskboard"
CONFIG_FILE = "config.yaml"
PROJECTS_DIR = "projects"
EVENTS_FILE = "events.jsonl"
LOCK_SUFFIX = ".lock"

WINDOWS_LOCK_BYTES = 4096

DEFAULT_NODE_SPACING = 250
DEFAULT_RANK_SPACING = 150
DEFAULT_SWEEP_PASSES = 4
DEFAULT_LAYOUT_CACHE_SIZE = 64

DEFAULT_PERSISTENCE_TIMEOUT_SECONDS = 10.0
DEFAULT_LOG_LEVEL = "INFO"

TASK_ID_PREFIX = "task"
EDGE_ID_PREFIX = "dep"

NOTIFICATION_HISTORY_LIMIT = 200
