"""
Terminal interface for the code smell detector.
"""
