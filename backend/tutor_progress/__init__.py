"""Accuracy scoring and XP progression service for the English tutor."""
