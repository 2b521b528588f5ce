"""FlexiConvert: upload a document, convert it in the background, download the result."""

__version__ = "0.1.0"
