"""Terminal rendering of run reports, deployment records, and journal history."""

from deployforge.monitor.renderer import RunRenderer

__all__ = ["RunRenderer"]
