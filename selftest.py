"""
Manual self-test runner for the notification store.
Touches the ("test", "hdd", "paused") state on the live backend.
"""

from config import StoreConfig
from store import NotificationStateStore

if __name__ == "__main__":
    store = NotificationStateStore(StoreConfig.from_env())
    raise SystemExit(0 if store.run_self_test() else 1)
