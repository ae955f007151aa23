import sys
import re
from typing import Optional, TextIO

# ANSI colors
RESET = "\033[0m"
BOLD = "\033[1m"
RED = "\033[91m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
BLUE = "\033[94m"
CYAN = "\033[96m"

# Regex to strip ANSI codes for file logging
ANSI_ESCAPE = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')


def strip_ansi(text: str) -> str:
    return ANSI_ESCAPE.sub('', text)


class Logger:
    def __init__(self, verbose: bool = False, log_file: Optional[str] = None, stream: Optional[TextIO] = None):
        self.verbose = verbose
        self.log_file = log_file
        self.stream = stream
        self._file_handle = None

        if self.log_file:
            # Append: several worker processes may share one log file
            try:
                self._file_handle = open(self.log_file, "a", encoding="utf-8")
            except OSError as e:
                sys.stderr.write(f"Warning: Could not open log file {self.log_file}: {e}\n")

    def _write(self, text: str):
        # Console output (with colors)
        if self.verbose:
            (self.stream or sys.stderr).write(text + "\n")

        # File output (without colors), regardless of verbose
        if self._file_handle:
            self._file_handle.write(strip_ansi(text) + "\n")
            self._file_handle.flush()

    def close(self):
        if self._file_handle:
            self._file_handle.close()
            self._file_handle = None

    def info(self, msg: str):
        self._write(msg)

    def success(self, msg: str):
        self._write(f"{GREEN}{msg}{RESET}")

    def warning(self, msg: str):
        self._write(f"{YELLOW}{msg}{RESET}")

    def error(self, msg: str):
        self._write(f"{RED}{msg}{RESET}")

    def gatekeeper(self, key: str, passed: bool, error: Optional[str] = None):
        if passed:
            self._write(f"{GREEN}{'PASSED':<8}{RESET} [{BOLD}{key}{RESET}]")
        else:
            self._write(f"{RED}{'FAILED':<8}{RESET} [{BOLD}{key}{RESET}]")
            lines = (error or "").strip().splitlines()
            if lines:
                self._write(f"   Error: {lines[0]}")

    def skip(self, test: str, reason: str):
        self._write(f"{CYAN}{'SKIPPED':<8}{RESET} [{BOLD}{test}{RESET}]")
        self._write(f"   Reason: {reason}")


# Silent default for components constructed without a logger
NULL_LOGGER = Logger(verbose=False)
