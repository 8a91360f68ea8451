"""dvmux: Dolby Vision Profile 5 MKV to dvh1 MP4 converter."""

__version__ = "0.1.0"
