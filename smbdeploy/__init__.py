"""smbdeploy - deploy a build folder to an SMB file share"""

__version__ = "1.0.0"
