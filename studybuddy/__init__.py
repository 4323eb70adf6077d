"""
StudyBuddy assignment reminders.

The package exposes `ReminderSystem` as the main orchestration class that
turns Canvas assignments into OpenAI-written SMS reminders sent via Textbelt.
"""

__version__ = "1.0.0"

from .reminder_system import ReminderSystem

__all__ = ["ReminderSystem", "__version__"]
