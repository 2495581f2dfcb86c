from colorama import init as colorama_init, Fore, Style
from datetime import datetime
from typing import Iterable

from apiscanner.core.models import Finding, Severity

colorama_init(autoreset=True)

_SEV_COLORS = {
    Severity.HIGH: Fore.RED,
    Severity.MEDIUM: Fore.YELLOW,
    Severity.LOW: Fore.GREEN,
    Severity.INFO: Fore.WHITE,
}


class Log:
    def __init__(self, verbose: int = 1):
        self.verbose = verbose

    def _time(self):
        return datetime.now().strftime("[%H:%M:%S]")

    def _fmt(self, level: str, color: str):
        return f"{self._time()} {color}[{level}]{Style.RESET_ALL}"

    def info(self, msg: str):
        if self.verbose >= 1:
            print(f"{self._fmt('INFO', Fore.CYAN)} {msg}")

    def warn(self, msg: str):
        if self.verbose >= 0:
            print(f"{self._fmt('WARNING', Fore.YELLOW)} {msg}")

    def ok(self, msg: str):
        print(f"{self._fmt('SUCCESS', Fore.GREEN)} {msg}")

    def fail(self, msg: str):
        print(f"{self._fmt('FAIL', Fore.RED)} {msg}")

    def debug(self, msg: str):
        if self.verbose >= 2:
            print(f"{self._fmt('DEBUG', Fore.MAGENTA)} {msg}")

    def finding(self, f: Finding):
        if f.severity < Severity.LOW and self.verbose < 2:
            return
        col = _SEV_COLORS.get(f.severity, Fore.WHITE)
        print(f"{self._fmt(f.severity.name, col)} {f.owasp} "
              f"{f.method} {f.endpoint} - {f.message} "
              f"{Style.DIM}(HTTP {f.status}){Style.RESET_ALL}")

    def summary(self, findings: Iterable[Finding]):
        counts = {sev: 0 for sev in Severity}
        total = 0
        for f in findings:
            counts[f.severity] += 1
            total += 1
        print(f"\n{Style.BRIGHT}=== SCAN COMPLETE ==={Style.RESET_ALL}")
        print(f"Total findings: {total}")
        print(", ".join(f"{_SEV_COLORS[sev]}{sev.name.title()}: {counts[sev]}{Style.RESET_ALL}"
                        for sev in reversed(Severity)))
