"""Personal assistant backend: tasks, projects, chat and calendar mirroring."""

__version__ = "0.1.0"
