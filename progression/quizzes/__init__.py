"""
Quizzes Package

Grading of quiz submissions and the unit of work applying their effects.
"""
