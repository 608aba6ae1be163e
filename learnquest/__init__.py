"""
LearnQuest Assessments

Quiz and exam assessment engine for the LearnQuest learning platform.
"""

__version__ = "0.1.0"
