"""Tools for scaffolding EVM simulation projects, generating forge bindings and forking chain state to disk."""

__version__ = "0.1.0"