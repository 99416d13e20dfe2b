STATE_DIR_NAME = ".planner"
CONFIG_FILE = "config.yaml"
STORE_FILENAME = "tasks.yaml"
STORE_LOCK_FILENAME = "tasks.lock"
LOCK_TIMEOUT = 30  # seconds

DEFAULT_CANDIDATE_LIMIT = 50
