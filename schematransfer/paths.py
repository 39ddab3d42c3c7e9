import os
import tempfile

from .config import load_config


def get_data_dir():
    base = load_config().get("data_dir") or os.path.join(os.path.expanduser("~"), ".local", "share")
    data_dir = os.path.join(base, "schematransfer")
    os.makedirs(data_dir, exist_ok=True)
    return data_dir


def get_db_path():
    return os.path.join(get_data_dir(), "schematransfer.db")


def get_temp_dir():
    # Process-local; never shared between server processes.
    base = load_config().get("temp_dir") or tempfile.gettempdir()
    temp_dir = os.path.join(base, f"schematransfer-{os.getpid()}")
    os.makedirs(temp_dir, exist_ok=True)
    return temp_dir


def get_unique_file_path(directory=None, suffix=".json"):
    fd, path = tempfile.mkstemp(prefix="transfer_", suffix=suffix, dir=directory or get_temp_dir())
    os.close(fd)
    return path


def get_unique_dir(directory=None, prefix="import_"):
    return tempfile.mkdtemp(prefix=prefix, dir=directory or get_temp_dir())
