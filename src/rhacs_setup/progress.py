# Assisted by watsonx Code Assistant
# Copyright 2025 IBM Corp.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from time import monotonic
from typing import List, Optional

from rich.table import Table

from .utils import console


class Status(Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class Task:
    id: str
    desc: str
    status: Status = Status.PENDING
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    result: Optional[str] = None

    @property
    def elapsed(self) -> str:
        if not self.started_at:
            return ""
        end = self.finished_at or monotonic()
        return f"{end - self.started_at:.1f}s"


class StepTracker:
    """Records the outcome of each setup step and renders a summary table.

    Steps print their own log lines through the shared console, so the
    summary is rendered once at the end instead of as a live display.
    """

    def __init__(self) -> None:
        self.tasks: List[Task] = []

    def add(self, id: str, desc: str) -> Task:
        t = Task(id=id, desc=desc)
        self.tasks.append(t)
        return t

    def skip(self, task: Task, reason: str = "skipped"):
        task.status = Status.SKIPPED
        task.result = reason

    @property
    def failed(self) -> bool:
        return any(t.status == Status.FAILED for t in self.tasks)

    def render(self) -> Table:
        tbl = Table(title="Setup Summary", expand=False)
        tbl.add_column("")
        tbl.add_column("Step", style="bold")
        tbl.add_column("Time", justify="right")
        tbl.add_column("Result")
        for t in self.tasks:
            if t.status == Status.SUCCESS:
                sym = "[green]✓[/green]"
            elif t.status == Status.FAILED:
                sym = "[red]✗[/red]"
            elif t.status == Status.SKIPPED:
                sym = "[yellow]-[/yellow]"
            else:
                sym = "…"
            tbl.add_row(sym, t.desc, t.elapsed, t.result or "")
        return tbl

    def print_summary(self):
        console.print()
        console.print(self.render())


class Step:
    def __init__(self, tracker: StepTracker, task: Task) -> None:
        self.tracker = tracker
        self.task = task

    def __enter__(self):
        self.task.status = Status.RUNNING
        self.task.started_at = monotonic()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.task.finished_at = monotonic()
        if exc_type is None:
            self.task.status = Status.SUCCESS
            self.task.result = "ok"
        else:
            self.task.status = Status.FAILED
            # typer.Exit carries an exit code, not a message
            msg = str(exc) if exc is not None else ""
            if msg and not msg.isdigit():
                self.task.result = f"{exc_type.__name__}: {msg}"
            else:
                self.task.result = "failed"

        # do not swallow exceptions
        return False
