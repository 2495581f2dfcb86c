"""Ordered plugin registry with per-plugin failure isolation."""

from typing import List

from apiscanner.checkers.base import BasePlugin
from apiscanner.checkers.broken_auth import BrokenAuthenticationPlugin
from apiscanner.checkers.inventory import InventoryManagementPlugin
from apiscanner.checkers.misconfig import SecurityMisconfigPlugin
from apiscanner.core.context import ExecutionContext
from apiscanner.core.models import Finding, Severity


def default_plugins() -> List[BasePlugin]:
    return [BrokenAuthenticationPlugin(), SecurityMisconfigPlugin(), InventoryManagementPlugin()]


class PluginRegistry:

    def __init__(self):
        self._plugins: List[BasePlugin] = []

    def register(self, plugin: BasePlugin) -> "PluginRegistry":
        self._plugins.append(plugin)
        return self

    def register_defaults(self) -> "PluginRegistry":
        for plugin in default_plugins():
            self.register(plugin)
        return self

    def all(self) -> List[BasePlugin]:
        return list(self._plugins)

    def __len__(self):
        return len(self._plugins)

    def run_all(self, ctx: ExecutionContext) -> List[Finding]:
        """
        Run every plugin in registration order against *ctx*. New findings are
        appended to ``ctx.findings``; a failing plugin contributes one LOW finding
        and never stops the ones after it. Returns the findings added.
        """
        start = len(ctx.findings)
        log = ctx.logger
        if log:
            log.info(f"Running {len(self._plugins)} security plugins...")

        for plugin in self._plugins:
            try:
                found = plugin.run(ctx) or []
            except Exception as exc:
                if log:
                    log.fail(f"{plugin.title} failed: {exc}")
                found = [Finding("(plugin)", "N/A", 0, plugin.id, Severity.LOW, f"Plugin error: {exc}")]
            else:
                if log:
                    log.ok(f"{plugin.title} completed ({len(found)} findings)")
            for f in found:
                ctx.findings.append(f)
                if log:
                    log.finding(f)
        return ctx.findings[start:]
