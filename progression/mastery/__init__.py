"""
Mastery Package

Long-run mastery per learner, subject and grade, and per-topic weak areas.
"""

from progression.mastery.service import MasteryTracker, WeakAreaTracker, merge_mastery

__all__ = ['MasteryTracker', 'WeakAreaTracker', 'merge_mastery']
