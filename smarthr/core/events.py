SNAPSHOT = "snapshot"
ERROR = "error"
DONE = "done"
