"""storyhub — bilingual story records with image and video attachments."""

__version__ = "0.3.0"
