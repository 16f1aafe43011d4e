"""
Bitbucket Backup — mirror every repository and branch of a Bitbucket
workspace to local disk.
"""

__version__ = "1.0.0"
