"""Command generation, status checking and option handling for DYMO LabelManager tape printers."""

__version__ = "0.1.0"
__all__ = ["driver", "monitor", "options"]