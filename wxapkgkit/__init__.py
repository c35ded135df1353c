"""Decrypt and encrypt mini-program .wxapkg packages and map routes of unpacked projects."""

__version__ = "0.1.0"