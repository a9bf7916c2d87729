# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0

"""
Configuration report.

Instead of continuously logging structural findings about the Kconfig tree (symbols defined in several places,
references to symbols which are never defined, ...), the KconfigReport stores them and prints them at the end
of the configuration process as one report. Every SymbolTable owns one report.
"""

import json
import os
import textwrap
from abc import ABC
from abc import abstractmethod
from typing import TYPE_CHECKING
from typing import Dict
from typing import List
from typing import Optional
from typing import Set

from rich import print as rprint
from rich.box import HORIZONTALS
from rich.console import Console
from rich.table import Table

from kbuild_kconfig import __version__

if TYPE_CHECKING:
    from .core import SymbolTable

STATUS_NONE = 0
STATUS_OK = 1
STATUS_OK_WITH_INFO = 2
STATUS_WARNING = 3
STATUS_ERROR = 4

_INDENT = " " * 4
VERBOSITY_QUIET = "quiet"  # Report only if there is an error
VERBOSITY_DEFAULT = "default"  # Report standard information
VERBOSITY_VERBOSE = "verbose"  # Report everything every time

AREA_TITLE_STYLE = "bold blue"
INFO_STRING_STYLE = "italic"
SUBTITLE_STYLE = "bold"


class Area(ABC):
    """
    Abstract class holding the base structure of every area in the report.
    """

    def __init__(self, title: str, info_string: str):
        """
        title:
        info_string:
            Both are used to describe the area in the report.
            Title is printed every time specific area is printed, info string provides additional information
            about the area, which may further help to understand the issue.
        """
        self.title: str = title
        self.info_string: str = info_string

    @abstractmethod
    def add_record(self, **kwargs) -> None:
        pass

    @abstractmethod
    def report_severity(self) -> int:
        """
        If given area has nothing to report, STATUS_OK should be returned.
        Otherwise, STATUS_OK_WITH_INFO, STATUS_WARNING or STATUS_ERROR should be returned,
        depending how severe record in given area is.
        """
        pass

    @abstractmethod
    def rows(self, verbosity: str) -> List[str]:
        pass

    @abstractmethod
    def data(self):
        pass

    def print(self, verbosity: str) -> Optional[Table]:
        if self.report_severity() == STATUS_OK:
            return None

        table = Table(title=self.title, title_justify="left", show_header=False, title_style=AREA_TITLE_STYLE)
        table.box = HORIZONTALS
        table.add_column("", justify="left", no_wrap=True)
        if verbosity == VERBOSITY_VERBOSE and self.info_string:
            table.add_row(self.info_string, style=INFO_STRING_STYLE)
        for row in self.rows(verbosity):
            table.add_row(row)
        return table

    def return_json(self) -> Optional[dict]:
        if self.report_severity() == STATUS_OK:
            return None
        return {"title": self.title, "severity": self.severity_to_str(self.report_severity()), "data": self.data()}

    @staticmethod
    def severity_to_str(severity: int) -> str:
        if severity == STATUS_OK:
            return "OK"
        elif severity == STATUS_OK_WITH_INFO:
            return "Info"
        elif severity == STATUS_WARNING:
            return "Warning"
        else:
            return "Error"


class MultipleDefinitionArea(Area):
    """
    Multiple definition: having two or more definitions of the symbol/choice with the same name.
    """

    def __init__(self):
        super().__init__(
            title="Multiple Symbol/Choice Definitions",
            info_string=textwrap.dedent(
                """\
                Multiple definitions of the same symbol name are allowed by the Kconfig syntax.
                However, it may happen that e.g. two different subsystems accidentally define the same symbol name,
                which may lead to unexpected behavior.
                """
            ),
        )
        self.multiple_definitions: Dict[str, List[str]] = dict()

    def add_record(self, **kwargs) -> None:
        """
        kwargs:
            name: str
            occurrences: List[str]
        """
        occurrences = self.multiple_definitions.setdefault(kwargs["name"], [])
        for occurrence in kwargs.get("occurrences", []):
            if occurrence not in occurrences:
                occurrences.append(occurrence)

    def report_severity(self) -> int:
        return STATUS_OK if not self.multiple_definitions else STATUS_OK_WITH_INFO

    def rows(self, verbosity: str) -> List[str]:
        rows = []
        for name, occurrences in self.multiple_definitions.items():
            rows.append(name)
            rows.extend(_INDENT + occurrence for occurrence in occurrences)
        return rows

    def data(self) -> Dict[str, List[str]]:
        return {name: list(occurrences) for name, occurrences in self.multiple_definitions.items()}


class UndefinedSymbolArea(Area):
    """
    Symbols referenced in expressions (or selected/implied) but never defined. They evaluate to n/"",
    which is legal, but often a typo.
    """

    def __init__(self):
        super().__init__(
            title="References to Undefined Symbols",
            info_string=textwrap.dedent(
                """\
                Referencing a symbol which is not defined anywhere is not an error; the symbol evaluates to n.
                Kconfig trees often reference symbols defined only for some architectures.
                """
            ),
        )
        self.references: Dict[str, Set[str]] = dict()

    def add_record(self, **kwargs) -> None:
        """
        kwargs:
            name: str
            referenced_from: str
        """
        self.references.setdefault(kwargs["name"], set()).add(kwargs["referenced_from"])

    def report_severity(self) -> int:
        return STATUS_OK if not self.references else STATUS_OK_WITH_INFO

    def rows(self, verbosity: str) -> List[str]:
        rows = []
        for name, referenced_from in sorted(self.references.items()):
            if verbosity == VERBOSITY_VERBOSE:
                rows.append(f"{name} (referenced from {', '.join(sorted(referenced_from))})")
            else:
                rows.append(name)
        return rows

    def data(self) -> Dict[str, List[str]]:
        return {name: sorted(referenced_from) for name, referenced_from in sorted(self.references.items())}


class MiscArea(Area):
    """
    All the messages not related to the other areas.
    """

    def __init__(self):
        super().__init__(title="Miscellaneous", info_string="")
        self.messages: List[str] = []

    def add_record(self, **kwargs) -> None:
        """
        kwargs:
            message: str
        """
        if "message" not in kwargs:
            raise AttributeError("Message must be specified for MiscArea.")
        if kwargs["message"] not in self.messages:
            self.messages.append(str(kwargs["message"]))

    def report_severity(self) -> int:
        return STATUS_OK if not self.messages else STATUS_OK_WITH_INFO

    def rows(self, verbosity: str) -> List[str]:
        return [f"* {message}" for message in self.messages]

    def data(self) -> List[str]:
        return list(self.messages)


class KconfigReport:
    """
    By add_record() method, new records are added to the report.
    Every time, it is needed to specify report area for given record.
    Every area is described by a class inheriting from Area class.
    """

    def __init__(self, symtab: "SymbolTable", verbosity: Optional[str] = None) -> None:
        self.symtab = symtab
        self.verbosity: str = verbosity or os.getenv("KCONFIG_REPORT_VERBOSITY", VERBOSITY_DEFAULT)
        self.areas = (MultipleDefinitionArea(), UndefinedSymbolArea(), MiscArea())

        """
        area_to_instance:
            Mapping from Area class to the Area object. It is used to quickly find the Area object for given Area class.
        """
        self.area_to_instance: Dict[type, Area] = {area.__class__: area for area in self.areas}

    @property
    def status(self) -> int:
        """
        Get the status of the configuration.
        """
        return max(area.report_severity() for area in self.areas) or STATUS_OK

    def add_record(self, area: type, **kwargs) -> None:
        self.area_to_instance[area].add_record(**kwargs)

    def _make_header(self) -> Table:
        header_table = Table(title_style="bold", show_header=False)
        header_table.box = None
        header_table.add_column("Configuration", justify="left")
        header_table.add_row(f"kbuild-kconfig version: {__version__}")
        header_table.add_row(f"Verbosity: {self.verbosity}")
        if self.verbosity == VERBOSITY_VERBOSE:
            header_table.add_row(f"Symbols defined: {len(self.symtab)}")

        status = self.status
        if status == STATUS_OK:
            header_table.add_row("Status: Finished successfully", style="green")
        elif status == STATUS_OK_WITH_INFO:
            header_table.add_row("Status: Finished with notifications", style="green_yellow")
            if self.verbosity == VERBOSITY_VERBOSE:
                header_table.add_row(
                    "Configuration is successfully finished, but the system has identified situations that could "
                    "potentially cause some issues. Please check the relevant areas.",
                    style="green_yellow",
                )
        elif status == STATUS_WARNING:
            header_table.add_row("Status: Finished with warnings", style="yellow")
        else:
            header_table.add_row("Status: Failed", style="red")

        header_table.add_row("")
        return header_table

    def print_report(self, file: Optional[str] = None) -> None:
        if self.verbosity == VERBOSITY_QUIET and self.status in (STATUS_OK, STATUS_OK_WITH_INFO, STATUS_WARNING):
            return

        report_table = Table(title="Configuration Report", title_style="bold", show_header=False, title_justify="left")
        report_table.box = HORIZONTALS
        report_table.add_column("Configuration", justify="center", no_wrap=False)
        report_table.add_row(self._make_header())

        for area in self.areas:
            sub_report = area.print(verbosity=self.verbosity)
            if sub_report:
                report_table.add_row(sub_report)

        if not file:
            console = Console(force_terminal=True, stderr=True)
            console.print(report_table)
        else:
            with open(file, "w") as f:
                rprint(report_table, file=f)

    def to_json(self) -> dict:
        report_json: Dict = dict()
        report_json["header"] = {
            "report_type": "kconfig",
            "version": __version__,
            "verbosity": self.verbosity,
            "status": Area.severity_to_str(self.status),
            "defined_syms": len(self.symtab),
        }
        # Status OK means that there is nothing to report in the area
        report_json["areas"] = [area.return_json() for area in self.areas if area.report_severity() != STATUS_OK]
        return report_json

    def output_json(self, file: Optional[str] = None) -> None:
        report_json = self.to_json()
        if not file:
            console = Console(force_terminal=True, stderr=True)
            console.print(json.dumps(report_json, indent=4))
        else:
            with open(file, "w+") as f:
                json.dump(report_json, f, indent=4)
