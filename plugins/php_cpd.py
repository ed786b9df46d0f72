"""
PHP Copy/Paste Detector plugin.

Runs phpcpd over the build checkout and records every duplicated block as a
build error.
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path

from lxml import etree

from store.models import Build, BuildError

from .base import Plugin, PluginError
from .builder import Builder

logger = logging.getLogger(__name__)

_REPORT_PARSER = etree.XMLParser(resolve_entities=False, no_network=True)


class PhpCpd(Plugin):
    """Copy/paste detection for PHP sources."""

    BINARY_NAMES: tuple[str, ...] = ("phpcpd", "phpcpd.phar")

    def __init__(
        self,
        builder: Builder,
        build: Build,
        options: Mapping[str, object] | None = None,
    ) -> None:
        super().__init__(builder, build, options)
        self.executable: str = self.find_binary(self.BINARY_NAMES)

    @classmethod
    def plugin_name(cls) -> str:
        return "php_cpd"

    @classmethod
    def can_execute_on_stage(cls, stage: str, build: Build) -> bool:
        return stage == Build.STAGE_TEST

    def execute(self) -> bool:
        ignore = self._ignore_arguments()
        target = self.directory or "."

        fd, report_path = tempfile.mkstemp(prefix=f"{self.plugin_name()}_", suffix=".xml")
        os.close(fd)
        try:
            success = self.builder.execute_command(
                [self.executable, "--log-pmd", report_path, *ignore, target],
                cwd=self.builder.build_path,
                timeout_seconds=self.options.timeout_seconds,
            )
            report = Path(report_path).read_text(encoding="utf-8")
            error_count = self.process_report(report)
            self.build.store_meta(f"{self.plugin_name()}-warnings", error_count)
        finally:
            Path(report_path).unlink(missing_ok=True)

        logger.info("%s found %d duplications", self.plugin_name(), error_count)
        return success

    def _ignore_arguments(self) -> list[str]:
        """Exclusion flags for the installed phpcpd version.

        Older releases exclude files by name with ``--names-exclude``; newer
        ones reject that flag and take ``--exclude`` for files and directories.
        """
        legacy: list[str] = []
        current: list[str] = []
        files_to_ignore: list[str] = []
        for item in self.ignore:
            current.extend(["--exclude", item])
            item = item.rstrip("/")
            if (Path(self.builder.build_path) / item).is_file():
                files_to_ignore.append(Path(item).name)
            else:
                legacy.extend(["--exclude", item])

        if files_to_ignore:
            legacy.extend(["--names-exclude", ",".join(files_to_ignore)])

        if not self.ignore:
            return legacy

        probe = self.builder.run_command(
            [self.executable, *legacy, self.directory or ".", "--version"],
            cwd=self.builder.build_path,
            timeout_seconds=self.options.timeout_seconds,
        )
        output_lines = (probe.stdout + probe.stderr).strip().splitlines()
        last_line = output_lines[-1] if output_lines else ""
        if "--names-exclude" in last_line:
            return current
        return legacy

    def process_report(self, xml_string: str) -> int:
        """Record one build error per duplicated location; return the duplication count."""
        try:
            root = etree.fromstring(xml_string.encode("utf-8"), parser=_REPORT_PARSER)
        except etree.XMLSyntaxError as exc:
            self.builder.log(xml_string)
            raise PluginError("Could not process the report generated by PHPCpd.") from exc

        warnings = 0
        for duplication in root.iter("duplication"):
            fragment = duplication.findtext("codefragment") or ""
            lines = _int_attribute(duplication, "lines")
            message = f"Copy and paste detected:\n\n```\n{fragment}\n```"

            for file_node in duplication.iter("file"):
                file_name = (file_node.get("path") or "").replace(self.builder.build_path, "")
                line = _int_attribute(file_node, "line")
                self.build.report_error(
                    self.plugin_name(),
                    message,
                    BuildError.SEVERITY_NORMAL,
                    file_name,
                    line,
                    line + lines,
                )

            warnings += 1

        return warnings


def _int_attribute(node: etree._Element, name: str) -> int:
    value = node.get(name)
    try:
        return int(value) if value is not None else 0
    except ValueError:
        return 0
