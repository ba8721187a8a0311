"""creatorstudio - voice capture core for turning spoken ideas into content."""

__version__ = "0.1.0"
