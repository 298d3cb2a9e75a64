"""Collaborators that carry out the side effects of provisioning steps."""

from .base import CommandRunner, EnvFile, Installer, Migration, TemplateWriter
from .files import DotenvFile, FileTemplateWriter
from .probes import CapabilityProbe, ContainsSpec, ProbeSpec
from .shell import ShellInstaller, ShellMigration, SubprocessCommandRunner

__all__ = [
    "CommandRunner",
    "EnvFile",
    "Installer",
    "Migration",
    "TemplateWriter",
    "DotenvFile",
    "FileTemplateWriter",
    "CapabilityProbe",
    "ContainsSpec",
    "ProbeSpec",
    "ShellInstaller",
    "ShellMigration",
    "SubprocessCommandRunner",
]
