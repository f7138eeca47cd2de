"""Environment provisioner — turn a bare base image into a working analysis environment."""

__version__ = "0.1.0"
