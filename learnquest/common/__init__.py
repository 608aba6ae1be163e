"""
Common utilities shared by the LearnQuest assessment engine.
"""
