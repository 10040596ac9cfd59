"""Optional collaborator adapters for running Lifeboat against real systems."""

from lifeboat.adapters.notifications import LoggingNotificationSink
from lifeboat.adapters.shell import ShellCommandExecutor
from lifeboat.adapters.sources import (
    StaticScenarioSource,
    YamlScenarioSource,
    parse_document,
    parse_scenario,
)

__all__ = [
    "LoggingNotificationSink",
    "ShellCommandExecutor",
    "StaticScenarioSource",
    "YamlScenarioSource",
    "parse_document",
    "parse_scenario",
]
