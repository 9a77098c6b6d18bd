"""
Adaptive Assessment and Progression Engine

This package selects the difficulty of the next question in a live session,
grades quiz submissions, and keeps the long-run state those produce:
1. Per-subject mastery with a difficulty breakdown
2. Weak-area counters used as topic hints
3. A gamification ledger of XP, levels, daily streaks and badges
"""

__version__ = "1.0.0"
