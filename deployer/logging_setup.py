import logging
import os
import sys

FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

def configure_logging(level: str = "INFO", notify_log_path: str = "") -> None:
    root = logging.getLogger()
    root.setLevel(level.upper())
    fmt = logging.Formatter(FORMAT)

    if not any(getattr(h, "_deployer", False) for h in root.handlers):
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(fmt)
        console._deployer = True
        root.addHandler(console)

    if notify_log_path:
        notify = logging.getLogger("deployer.notify")
        if not any(getattr(h, "_deployer", False) for h in notify.handlers):
            parent = os.path.dirname(notify_log_path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            file_handler = logging.FileHandler(notify_log_path, mode="a", encoding="utf-8")
            file_handler.setFormatter(fmt)
            file_handler._deployer = True
            notify.addHandler(file_handler)
