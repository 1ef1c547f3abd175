import os

from dotenv import load_dotenv

load_dotenv()
DEBUG_MODE = os.getenv("DEBUG_MODE", "false") == "true"


def is_debug() -> bool:
    return DEBUG_MODE


def debug(*args):
    """Print diagnostic lines when DEBUG_MODE is on"""
    if is_debug():
        for arg in args:
            if isinstance(arg, str):
                for line in arg.split("\n"):
                    print("DEBUG:", line)
            else:
                print("DEBUG:", arg)
