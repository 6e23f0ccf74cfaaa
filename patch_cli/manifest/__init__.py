"""
Manifest Layer.

This package fetches the remote file manifest and decodes its obfuscated
binary format.
"""

from .codec import decode_manifest, load_manifest_blob, xor_obfuscate
from .loader import ManifestLoader

__all__ = ["ManifestLoader", "decode_manifest", "load_manifest_blob", "xor_obfuscate"]
