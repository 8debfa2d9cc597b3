# CUI // SP-CTI
"""modelport: multi-vendor chat, embedding and image clients."""

__version__ = "0.8.0"
