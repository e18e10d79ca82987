"""
usersauth - request authorization gate and login/logout workflow.
"""

__version__ = "0.1.0"
