"""
Invoke a serverless function asynchronously and block until its logs show it finished.
"""

__version__ = "0.1.0"
